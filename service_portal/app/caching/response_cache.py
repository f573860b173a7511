"""
Short-TTL response caches for Apps Script payloads.

Entries are only ever written after a successful upstream call. Staleness is
checked at read time; stale entries are ignored, never purged, and get
overwritten on the next miss.
"""

import hashlib
import json
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlencode

import redis.asyncio as redis

from shared.logging import get_logger

DEFAULT_TTL_SECONDS = 30.0

# Actions whose purpose requires a fresh round-trip on every call
NO_CACHE_ACTIONS = frozenset({"ping", "reprocesar"})

# Parameters that never take part in a cache key
KEY_EXCLUDED_PARAMS = frozenset({"_token"})


@dataclass
class CacheEntry:
    """Cached upstream payload and the instant it was stored."""
    data: Any
    timestamp: float


def build_cache_key(base_url: str, action: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Serialize a request as ``base_url?<sorted query>``.

    Parameters are sorted by name so that logically identical requests share
    one entry regardless of the order they were appended in.
    """
    pairs = [("action", action)]
    for key, value in (params or {}).items():
        if key == "action" or key in KEY_EXCLUDED_PARAMS or value is None or value == "":
            continue
        pairs.append((key, str(value)))
    pairs.sort()
    return f"{base_url}?{urlencode(pairs)}"


def is_cacheable(action: str, params: Optional[Mapping[str, Any]] = None) -> bool:
    """Whether a request may be served from or written to a cache.

    Cursor (load-more) requests always go straight to the upstream.
    """
    if action in NO_CACHE_ACTIONS:
        return False
    return not (params or {}).get("cursor")


class ResponseCache(ABC):
    """Key/value cache of upstream payloads with a fixed TTL."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` if it is younger than the TTL."""

    @abstractmethod
    async def set(self, key: str, data: Any) -> None:
        """Store ``data`` under ``key``, unconditionally overwriting."""

    async def close(self) -> None:
        return None


class InMemoryResponseCache(ResponseCache):
    """Process-lifetime dictionary cache."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, *, clock: Callable[[], float] = time.time):
        super().__init__(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            return None
        return entry

    async def set(self, key: str, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())

    def __len__(self) -> int:
        return len(self._entries)


class RedisResponseCache(ResponseCache):
    """Redis-backed cache for deployments running several worker processes.

    Redis failures are logged and behave as misses.
    """

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        namespace: str = "proxy",
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(ttl_seconds)
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("portal.cache.redis")
        self._clock = clock
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"portal:{self.namespace}:{hashlib.md5(key.encode()).hexdigest()}"

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            redis_client = await self._get_redis()
            raw = await redis_client.get(self._make_key(key))
        except Exception as exc:
            self.logger.error("Cache get error", error=str(exc))
            return None

        if not raw:
            return None

        try:
            payload = json.loads(raw)
            entry = CacheEntry(data=payload["data"], timestamp=float(payload["timestamp"]))
        except (TypeError, ValueError, KeyError):
            self.logger.warning("Failed to deserialize cached payload")
            return None

        if self._clock() - entry.timestamp >= self.ttl_seconds:
            return None
        return entry

    async def set(self, key: str, data: Any) -> None:
        payload = json.dumps({"data": data, "timestamp": self._clock()})
        try:
            redis_client = await self._get_redis()
            await redis_client.setex(self._make_key(key), max(1, math.ceil(self.ttl_seconds)), payload)
        except Exception as exc:
            self.logger.error("Cache set error", error=str(exc))

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_response_cache(backend: str, *, ttl_seconds: float, redis_url: str, namespace: str) -> ResponseCache:
    """Instantiate the configured cache backend."""
    if backend == "redis":
        return RedisResponseCache(redis_url, ttl_seconds, namespace=namespace)
    if backend != "memory":
        get_logger("portal.cache").warning("Unknown cache backend, using memory", backend=backend)
    return InMemoryResponseCache(ttl_seconds)
