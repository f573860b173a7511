"""
Portal caching package.

Two read-through caches sit in front of the Apps Script backend: one for
server-rendered page loads and one for the browser-facing proxy. They share
the ResponseCache abstraction but never share state. Prefer idempotent,
short-lived entries; nothing here is a source of truth.
"""

from .response_cache import (
    CacheEntry,
    InMemoryResponseCache,
    NO_CACHE_ACTIONS,
    RedisResponseCache,
    ResponseCache,
    build_cache_key,
    create_response_cache,
    is_cacheable,
)
from .cached_client import CachedAppsScript, CachedResponse, CacheStatus

__all__ = [
    "CacheEntry",
    "CacheStatus",
    "CachedAppsScript",
    "CachedResponse",
    "InMemoryResponseCache",
    "NO_CACHE_ACTIONS",
    "RedisResponseCache",
    "ResponseCache",
    "build_cache_key",
    "create_response_cache",
    "is_cacheable",
]
