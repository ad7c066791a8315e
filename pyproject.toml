[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sidequests"
version = "0.1.0"
description = "Small networked tools: an RSS aggregator, a chirp API, an orders API, Redis messaging demos and an expiring cache"
requires-python = ">=3.10"
keywords = ["rss", "redis", "websocket", "flask", "cli", "rest-api", "cache"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
]
dependencies = [
    "flask",
    "redis",
    "websockets",
    "pynacl",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
gator = "sidequests.gator.gatorcli:main"
chirpy = "sidequests.chirpy.chirpserver:main"
orders-api = "sidequests.orders.orderapp:main"
chat-app = "sidequests.messaging.chatapp:main"
list-consumer = "sidequests.messaging.listconsumer:main"

[tool.hatch.build.targets.wheel]
packages = ["sidequests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]
