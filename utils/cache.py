"""TTL cache backends for serialized values."""
import time
import threading
import logging

logger = logging.getLogger("homewatch.cache")


class TTLCache:
    """Thread-safe in-process key-value cache with per-key TTL."""

    def __init__(self, clock=time.monotonic):
        self._store = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key):
        """Get value if exists and not expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() >= entry["expires"]:
                del self._store[key]
                return None
            return entry["value"]

    def set(self, key, value, ttl=300):
        """Set key with TTL in seconds."""
        with self._lock:
            self._store[key] = {
                "value": value,
                "expires": self._clock() + ttl,
            }

    def invalidate(self, key):
        """Remove a specific key."""
        with self._lock:
            self._store.pop(key, None)

    def clear(self):
        """Remove all entries."""
        with self._lock:
            self._store.clear()

    def __len__(self):
        with self._lock:
            return len(self._store)


class RedisCache:
    """Redis-backed cache. Connection and command errors propagate to the caller."""

    def __init__(self, url="redis://localhost:6379/0", client=None):
        if client is None:
            import redis
            client = redis.Redis.from_url(url, decode_responses=True)
        self._redis = client

    def get(self, key):
        value = self._redis.get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key, value, ttl=300):
        self._redis.setex(key, ttl, value)

    def invalidate(self, key):
        self._redis.delete(key)

    def clear(self):
        self._redis.flushdb()


def build_cache(config):
    """Pick the cache backend named in config["cache"]["backend"]."""
    cache_cfg = config.get("cache", {})
    backend = cache_cfg.get("backend", "memory")
    if backend == "redis":
        logger.info(f"Using redis rule cache at {cache_cfg.get('redis_url')}")
        return RedisCache(cache_cfg.get("redis_url", "redis://localhost:6379/0"))
    return TTLCache()
