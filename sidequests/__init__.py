"""Small networked tools: RSS aggregator, chirp API, orders API, Redis messaging and an expiring cache."""

__version__ = "0.1.0"