# carwash/services/cache/__init__.py
"""
Cache-aside layer.

Stores: RedisCacheStore (shared), MemoryCacheStore (single process).
CacheService adds JSON serialization, TTL, tags and graceful degradation.
"""

from .cache_service import CacheKey, CacheService, WarmupItem
from .store import CacheStore, MemoryCacheStore, RedisCacheStore

__all__ = [
    "CacheKey",
    "CacheService",
    "WarmupItem",
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
]
