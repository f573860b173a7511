"""
Read-through cache in front of the Apps Script client.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from shared.errors import PortalException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.apps_script_client import AppsScriptClient
from .response_cache import ResponseCache, build_cache_key, is_cacheable


class CacheStatus(str, Enum):
    """Outcome of a cache lookup, surfaced as the ``X-Cache`` header."""
    HIT = "HIT"
    MISS = "MISS"
    BYPASS = "BYPASS"


@dataclass
class CachedResponse:
    """Upstream payload plus how it was obtained."""
    data: Any
    status: CacheStatus
    duration_ms: int


class CachedAppsScript:
    """Serves GET actions from a ResponseCache, falling back to the upstream."""

    def __init__(
        self,
        client: AppsScriptClient,
        cache: ResponseCache,
        *,
        name: str,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.cache = cache
        self.name = name
        self.metrics = metrics
        self.logger = get_logger(f"portal.cache.{name}")

    async def fetch(self, action: str, params: Optional[Mapping[str, Any]] = None) -> CachedResponse:
        """Return the payload for ``action``.

        ConfigurationError and UpstreamError propagate with ``X-Cache`` and
        ``X-Response-Time`` attached to ``exc.headers``; failed calls never
        populate the cache.
        """
        params = dict(params or {})
        try:
            # raises ConfigurationError before any lookup or network call
            self.client.build_url(action, params)
        except PortalException as exc:
            exc.headers.update(self._diagnostics(CacheStatus.BYPASS, 0))
            raise

        if not is_cacheable(action, params):
            data, duration_ms = await self._call(action, params, CacheStatus.BYPASS)
            self._record(CacheStatus.BYPASS, action)
            return CachedResponse(data=data, status=CacheStatus.BYPASS, duration_ms=duration_ms)

        key = build_cache_key(self.client.base_url, action, params)
        entry = await self.cache.get(key)
        if entry is not None:
            self._record(CacheStatus.HIT, action)
            return CachedResponse(data=entry.data, status=CacheStatus.HIT, duration_ms=0)

        data, duration_ms = await self._call(action, params, CacheStatus.MISS)
        await self.cache.set(key, data)
        self._record(CacheStatus.MISS, action)
        return CachedResponse(data=data, status=CacheStatus.MISS, duration_ms=duration_ms)

    async def _call(self, action: str, params: Mapping[str, Any], status: CacheStatus):
        start = time.perf_counter()
        try:
            data = await self.client.call(action, params)
        except PortalException as exc:
            self._record(status, action)
            exc.headers.update(self._diagnostics(status, int((time.perf_counter() - start) * 1000)))
            raise
        return data, int((time.perf_counter() - start) * 1000)

    @staticmethod
    def _diagnostics(status: CacheStatus, duration_ms: int) -> Dict[str, str]:
        return {"X-Cache": status.value, "X-Response-Time": f"{duration_ms}ms"}

    def _record(self, status: CacheStatus, action: str) -> None:
        self.logger.debug("Cache lookup", status=status.value, action=action)
        if self.metrics:
            self.metrics.record_cache_lookup(self.name, status.value)
