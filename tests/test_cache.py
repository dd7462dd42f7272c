"""In-process TTL cache tests."""

from shortener.cache import TTLCache


def test_get_returns_value_until_ttl(clock) -> None:
    cache = TTLCache(clock, default_ttl=300)
    cache.set("system_stats", {"total": 1})

    clock.advance(seconds=299)
    assert cache.get("system_stats") == {"total": 1}

    clock.advance(seconds=1)
    assert cache.get("system_stats") is None
    assert cache.stats()["size"] == 0


def test_explicit_ttl_overrides_default(clock) -> None:
    cache = TTLCache(clock, default_ttl=300)
    cache.set("links:a", [1], ttl=10)

    clock.advance(seconds=11)
    assert not cache.has("links:a")


def test_delete_and_delete_prefix(clock) -> None:
    cache = TTLCache(clock)
    cache.set("system_stats", 1)
    cache.set("links:page1", 2)
    cache.set("links:page2", 3)

    assert cache.delete("system_stats")
    assert not cache.delete("system_stats")
    assert cache.delete_prefix("links:") == 2
    assert cache.stats() == {"size": 0, "keys": []}


def test_clear(clock) -> None:
    cache = TTLCache(clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert cache.get("a") is None
    assert cache.get("b") is None
