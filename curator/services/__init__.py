"""External services used by the curator."""

from .cache import (
    CacheEntry,
    CacheStats,
    CacheStore,
    CacheWrite,
    ExpiringCache,
    InMemoryCacheStore,
    SupabaseCacheStore,
    build_cache,
)
from .supabase_client import SupabaseClient

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "CacheWrite",
    "ExpiringCache",
    "InMemoryCacheStore",
    "SupabaseCacheStore",
    "SupabaseClient",
    "build_cache",
]
