"""Utility modules for homewatch."""
from utils.logger import setup_logging
from utils.cache import TTLCache, RedisCache, build_cache
