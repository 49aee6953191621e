"""Tests for the TTL cache backends."""
from unittest.mock import MagicMock

from utils.cache import TTLCache, RedisCache, build_cache


def test_ttl_cache_roundtrip(clock):
    cache = TTLCache(clock=clock)
    cache.set("k", "v", ttl=10)
    assert cache.get("k") == "v"


def test_ttl_cache_expiry(clock):
    cache = TTLCache(clock=clock)
    cache.set("k", "v", ttl=10)
    clock.advance(9.9)
    assert cache.get("k") == "v"
    clock.advance(0.1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_ttl_cache_invalidate_and_clear(clock):
    cache = TTLCache(clock=clock)
    cache.set("a", "1")
    cache.set("b", "2")
    cache.invalidate("a")
    assert cache.get("a") is None
    cache.clear()
    assert cache.get("b") is None


def test_redis_cache_uses_setex():
    client = MagicMock()
    client.get.return_value = b'{"x": 1}'
    cache = RedisCache(client=client)
    cache.set("alert_rules:m1", "payload", 300)
    client.setex.assert_called_once_with("alert_rules:m1", 300, "payload")
    assert cache.get("alert_rules:m1") == '{"x": 1}'


def test_build_cache_memory_default():
    assert isinstance(build_cache({"cache": {"backend": "memory"}}), TTLCache)
