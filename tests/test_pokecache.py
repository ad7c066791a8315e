import time

import pytest

from sidequests.pokedex.pokecache import Cache


@pytest.mark.parametrize(
    "ttl, key, val, wait, want_value",
    [
        (2.0, "pokemon/1", b"pikachu", 0.0, b"pikachu"),
        (0.1, "poke", b"charmander", 0.35, None),
    ],
    ids=["basic add and get", "expired entry"],
)
def test_cache_add_get(ttl, key, val, wait, want_value):
    with Cache(ttl) as cache:
        cache.add(key, val)
        if wait > 0:
            time.sleep(wait)
        assert cache.get(key) == want_value


def test_missing_key_returns_none():
    with Cache(2.0) as cache:
        assert cache.get("nothing-here") is None


def test_add_replaces_existing_value():
    with Cache(2.0) as cache:
        cache.add("key", b"first")
        cache.add("key", b"second")
        assert cache.get("key") == b"second"


def test_closed_cache_stops_reaping():
    cache = Cache(0.1)
    cache.add("kept", b"value")
    cache.close()
    time.sleep(0.3)
    assert cache.get("kept") == b"value"


@pytest.mark.parametrize("interval", [0, -1.5])
def test_non_positive_interval_is_rejected(interval):
    with pytest.raises(ValueError):
        Cache(interval)