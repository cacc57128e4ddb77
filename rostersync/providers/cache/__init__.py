"""Cache provider implementations."""

from rostersync.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
