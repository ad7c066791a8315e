"""Command-line RSS feed aggregator backed by SQLite."""