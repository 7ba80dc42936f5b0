"""Test the bounded enrichment cache."""
import pytest

from netlens.cache import Cache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_get_and_set():
    cache = Cache()
    cache.set("8.8.8.8", "google")

    assert cache.get("8.8.8.8") == "google"
    assert cache.get("1.1.1.1") is None
    assert cache.get("1.1.1.1", "default") == "default"
    assert cache.hits == 1
    assert cache.misses == 2


def test_none_is_a_cached_value():
    """Test that a lookup that found nothing is still remembered."""
    cache = Cache()
    cache.set("203.0.113.9", None)

    assert "203.0.113.9" in cache
    assert "203.0.113.10" not in cache


def test_evicts_least_recently_used():
    cache = Cache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2


def test_ttl_expiry():
    clock = FakeClock()
    cache = Cache(ttl=10.0, clock=clock)
    cache.set("a", 1)

    clock.now = 9.9
    assert cache.get("a") == 1

    clock.now = 10.0
    assert "a" not in cache
    assert cache.get("a") is None
    assert len(cache) == 0


def test_clear():
    cache = Cache()
    cache.set("a", 1)
    cache.get("a")
    cache.clear()

    assert len(cache) == 0
    assert cache.hits == 0


def test_rejects_empty_capacity():
    with pytest.raises(ValueError):
        Cache(max_entries=0)
