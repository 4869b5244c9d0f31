"""Key-value cache backends for the single-asset fast path."""

from yield_monitor.cache.store import KeyValueCache, NullCache, RedisCache

__all__ = ["KeyValueCache", "NullCache", "RedisCache"]
