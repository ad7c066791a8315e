"""A small in-memory cache whose entries expire after a fixed interval."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class _Entry:
    val: bytes
    created_at: float


class Cache:
    """Thread-safe byte cache; a background reaper drops entries older than ``interval`` seconds."""

    def __init__(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("cache interval must be positive")
        self.interval = float(interval)
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._reaper: threading.Thread | None = None

    def add(self, key: str, val: bytes) -> None:
        """Store ``val`` under ``key``, replacing any earlier entry."""
        with self._lock:
            self._entries[key] = _Entry(bytes(val), time.monotonic())
            if self._reaper is None and not self._stop.is_set():
                self._reaper = threading.Thread(
                    target=self._reap_loop, name="pokecache-reaper", daemon=True
                )
                self._reaper.start()

    def get(self, key: str) -> bytes | None:
        """Return the cached value for ``key``, or None when it is absent."""
        with self._lock:
            entry = self._entries.get(key)
        return None if entry is None else entry.val

    def close(self) -> None:
        """Stop the background reaper."""
        self._stop.set()
        reaper = self._reaper
        if reaper is not None and reaper is not threading.current_thread():
            reaper.join()

    def __enter__(self) -> Cache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _reap_loop(self) -> None:
        while not self._stop.wait(self.interval):
            self._reap()

    def _reap(self) -> None:
        now = time.monotonic()
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if now - entry.created_at > self.interval
            ]
            for key in expired:
                del self._entries[key]