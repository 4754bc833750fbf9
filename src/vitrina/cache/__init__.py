"""
Módulo de cache.

Provee el cliente de Redis, el cache read-through y la invalidación
por namespace.
"""

from vitrina.cache.redis_client import get_redis_cache, RedisCache
from vitrina.cache.read_through import ReadThroughCache, FetchResult, serialize
from vitrina.cache.invalidation import (
    invalidate_namespace,
    invalidate_keys,
    BackgroundQueue,
    CacheInvalidator,
)

__all__ = [
    "get_redis_cache",
    "RedisCache",
    "ReadThroughCache",
    "FetchResult",
    "serialize",
    "invalidate_namespace",
    "invalidate_keys",
    "BackgroundQueue",
    "CacheInvalidator",
]
