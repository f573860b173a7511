"""
Unit tests for the response caches and the cached Apps Script client.
"""

from unittest.mock import AsyncMock

import pytest

from shared.errors import ConfigurationError, UpstreamError
from shared.test_helpers import APPS_SCRIPT_URL, UpstreamStub
from service_portal.app.adapters.apps_script_client import AppsScriptClient
from service_portal.app.caching import (
    CachedAppsScript,
    CacheStatus,
    InMemoryResponseCache,
    RedisResponseCache,
    build_cache_key,
    create_response_cache,
    is_cacheable,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.lookups = []

    def record_cache_lookup(self, cache: str, status: str):
        self.lookups.append((cache, status))

    def record_upstream_call(self, action: str, outcome: str, duration: float):
        pass


class TestCacheKeys:
    def test_parameter_order_does_not_change_the_key(self):
        first = build_cache_key(APPS_SCRIPT_URL, "procesos", {"limite": 200, "ownerEmail": "ALL"})
        second = build_cache_key(APPS_SCRIPT_URL, "procesos", {"ownerEmail": "ALL", "limite": 200})
        assert first == second

    def test_token_is_excluded(self):
        key = build_cache_key(APPS_SCRIPT_URL, "dashboard", {"_token": "s3cr3t"})
        assert "s3cr3t" not in key
        assert key == f"{APPS_SCRIPT_URL}?action=dashboard"

    def test_owner_scope_changes_the_key(self):
        mine = build_cache_key(APPS_SCRIPT_URL, "procesos", {"ownerEmail": "ana@transperuana.com.pe"})
        everyone = build_cache_key(APPS_SCRIPT_URL, "procesos", {"ownerEmail": "ALL"})
        assert mine != everyone

    @pytest.mark.parametrize("action,params,expected", [
        ("dashboard", {}, True),
        ("ping", {}, False),
        ("reprocesar", {"idProceso": "PROC-1"}, False),
        ("procesos", {"cursor": "abc"}, False),
        ("procesos", {"cursor": ""}, True),
    ])
    def test_is_cacheable(self, action, params, expected):
        assert is_cacheable(action, params) is expected


class TestInMemoryResponseCache:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return InMemoryResponseCache(30.0, clock=clock)

    @pytest.mark.asyncio
    async def test_entry_is_served_strictly_inside_the_ttl(self, cache, clock):
        await cache.set("k", {"value": 1})

        clock.now += 29.999
        entry = await cache.get("k")
        assert entry is not None and entry.data == {"value": 1}

        clock.now += 0.001
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_stale_entries_are_ignored_not_purged(self, cache, clock):
        await cache.set("k", {"value": 1})
        clock.now += 60

        assert await cache.get("k") is None
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_set_overwrites(self, cache, clock):
        await cache.set("k", {"value": 1})
        clock.now += 10
        await cache.set("k", {"value": 2})
        clock.now += 25

        entry = await cache.get("k")
        assert entry.data == {"value": 2}


class TestRedisResponseCache:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def redis_client(self):
        return AsyncMock()

    @pytest.fixture
    def cache(self, clock, redis_client):
        cache = RedisResponseCache("redis://localhost:6379/0", 30.0, namespace="proxy", clock=clock)
        cache._redis = redis_client
        return cache

    @pytest.mark.asyncio
    async def test_set_uses_setex_with_ttl(self, cache, redis_client):
        await cache.set("k", {"value": 1})

        redis_key, ttl, payload = redis_client.setex.call_args.args
        assert redis_key.startswith("portal:proxy:")
        assert ttl == 30
        assert '"value": 1' in payload

    @pytest.mark.asyncio
    async def test_get_round_trips_payload(self, cache, redis_client):
        redis_client.get.return_value = '{"data": {"value": 1}, "timestamp": 990.0}'

        entry = await cache.get("k")

        assert entry.data == {"value": 1}

    @pytest.mark.asyncio
    async def test_redis_errors_are_misses(self, cache, redis_client):
        redis_client.get.side_effect = ConnectionError("redis down")

        assert await cache.get("k") is None

    def test_factory_selects_backend(self):
        assert isinstance(
            create_response_cache("redis", ttl_seconds=30, redis_url="redis://localhost:6379/0", namespace="pages"),
            RedisResponseCache,
        )
        assert isinstance(
            create_response_cache("memory", ttl_seconds=30, redis_url="", namespace="pages"),
            InMemoryResponseCache,
        )


class TestCachedAppsScript:
    """Read-through behaviour in front of the upstream."""

    @pytest.fixture
    def upstream(self):
        return UpstreamStub()

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def metrics(self):
        return DummyMetrics()

    @pytest.fixture
    def cached(self, upstream, clock, metrics):
        client = AppsScriptClient(APPS_SCRIPT_URL, transport=upstream.transport())
        return CachedAppsScript(client, InMemoryResponseCache(30.0, clock=clock), name="proxy", metrics=metrics)

    @pytest.mark.asyncio
    async def test_miss_then_hit_within_ttl(self, cached, upstream, metrics):
        upstream.on("dashboard", {"success": True, "kpis": {}})

        first = await cached.fetch("dashboard")
        second = await cached.fetch("dashboard")

        assert first.status == CacheStatus.MISS
        assert second.status == CacheStatus.HIT
        assert second.duration_ms == 0
        assert len(upstream.calls("dashboard")) == 1
        assert metrics.lookups == [("proxy", "MISS"), ("proxy", "HIT")]

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(self, cached, upstream, clock):
        upstream.on("dashboard", {"success": True})

        await cached.fetch("dashboard")
        clock.now += 30
        response = await cached.fetch("dashboard")

        assert response.status == CacheStatus.MISS
        assert len(upstream.calls("dashboard")) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["ping", "reprocesar"])
    async def test_exempt_actions_always_reach_upstream(self, cached, upstream, action):
        upstream.on(action, {"success": True})

        statuses = [(await cached.fetch(action)).status for _ in range(3)]

        assert statuses == [CacheStatus.BYPASS] * 3
        assert len(upstream.calls(action)) == 3

    @pytest.mark.asyncio
    async def test_cursor_requests_bypass_the_cache(self, cached, upstream):
        upstream.on("procesos", {"success": True, "procesos": []})

        await cached.fetch("procesos", {"cursor": "abc"})
        response = await cached.fetch("procesos", {"cursor": "abc"})

        assert response.status == CacheStatus.BYPASS
        assert len(upstream.calls("procesos")) == 2

    @pytest.mark.asyncio
    async def test_failures_never_populate_the_cache(self, cached, upstream):
        upstream.on("errores", {"success": False, "error": "fallo"})

        with pytest.raises(UpstreamError):
            await cached.fetch("errores")

        upstream.on("errores", {"success": True, "errores": []})
        response = await cached.fetch("errores")

        assert response.status == CacheStatus.MISS
        assert len(upstream.calls("errores")) == 2

    @pytest.mark.asyncio
    async def test_failed_fetch_carries_cache_diagnostics(self, cached, upstream, metrics):
        upstream.on("errores", {"success": False, "error": "fallo"})

        with pytest.raises(UpstreamError) as exc_info:
            await cached.fetch("errores")

        assert exc_info.value.headers["X-Cache"] == "MISS"
        assert exc_info.value.headers["X-Response-Time"].endswith("ms")
        assert metrics.lookups == [("proxy", "MISS")]

    @pytest.mark.asyncio
    async def test_reordered_parameters_share_an_entry(self, cached, upstream):
        upstream.on("procesos", {"success": True, "procesos": []})

        await cached.fetch("procesos", {"limite": 200, "ownerEmail": "ALL"})
        response = await cached.fetch("procesos", {"ownerEmail": "ALL", "limite": 200})

        assert response.status == CacheStatus.HIT

    @pytest.mark.asyncio
    async def test_unconfigured_upstream_raises_before_lookup(self, upstream, metrics):
        cache = AsyncMock()
        cached = CachedAppsScript(AppsScriptClient("", transport=upstream.transport()), cache, name="proxy")

        with pytest.raises(ConfigurationError):
            await cached.fetch("dashboard")

        cache.get.assert_not_called()
        assert upstream.requests == []
