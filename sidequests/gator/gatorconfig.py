"""Reading and writing the gator configuration file in the user's home directory."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

CONFIG_FILE_NAME = ".gatorconfig.json"

PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class Config:
    """Database location and the name of the user currently logged in."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, repr=False, compare=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.current_user_name = user_name
        write(self, self.path)


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _string_field(data: dict[str, Any], key: str, source: Path) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"invalid config file {source}: {key!r} must be a string")
    return value


def read(path: PathLike | None = None) -> Config:
    """Load the configuration from ``path``, or from the home directory by default."""
    target = Path(path) if path is not None else config_file_path()
    text = target.read_text(encoding="utf-8")
    try:
        data, _ = json.JSONDecoder().raw_decode(text.lstrip())
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid config file {target}: {exc}") from exc

    if data is None:
        return Config(path=target)
    if not isinstance(data, dict):
        raise ValueError(f"invalid config file {target}: expected a JSON object")

    return Config(
        db_url=_string_field(data, "db_url", target),
        current_user_name=_string_field(data, "current_user_name", target),
        path=target,
    )


def write(config: Config, path: PathLike | None = None) -> None:
    """Save ``config`` as JSON to ``path``, its own path, or the home directory."""
    if path is not None:
        target = Path(path)
    elif config.path is not None:
        target = config.path
    else:
        target = config_file_path()

    payload = json.dumps(
        {"db_url": config.db_url, "current_user_name": config.current_user_name},
        separators=(",", ":"),
        ensure_ascii=False,
    )
    with open(target, "w", encoding="utf-8") as handle:
        handle.write(payload + "\n")