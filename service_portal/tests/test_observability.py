"""
Tests for log redaction, error bodies and the metrics endpoint.
"""

from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from shared.config import get_config
from shared.errors import UpstreamTimeoutError
from shared.logging import add_correlation_context, clear_context, redact_secrets, set_request_id, set_user_context
from shared.metrics import get_metrics_collector
from service_portal.app.main import PortalService


class TestLogging:
    def test_token_is_redacted_at_top_level_and_in_params(self):
        event = redact_secrets(None, "info", {
            "event": "Apps Script call",
            "_token": "s3cr3t",
            "params": {"action": "dashboard", "_token": "s3cr3t"},
        })

        assert event["_token"] == "***"
        assert event["params"] == {"action": "dashboard", "_token": "***"}

    def test_correlation_context(self):
        set_request_id("req-1")
        set_user_context("ana.torres@transperuana.com.pe")
        try:
            event = add_correlation_context(None, "info", {"event": "x"})
        finally:
            clear_context()

        assert event["request_id"] == "req-1"
        assert event["user_email"] == "ana.torres@transperuana.com.pe"
        assert add_correlation_context(None, "info", {"event": "y"}) == {"event": "y"}


class TestErrorsAndMetrics:
    def test_timeout_error_shape(self):
        body = UpstreamTimeoutError(details={"action": "proceso"}).to_response().model_dump()

        assert body["success"] is False
        assert body["code"] == "UPSTREAM_TIMEOUT"
        assert body["details"] == {"action": "proceso"}
        assert body["timestamp"].endswith("Z")

    def test_isolated_registry_counts_cache_lookups(self):
        registry = CollectorRegistry()
        metrics = get_metrics_collector("portal-test", registry=registry)

        metrics.record_cache_lookup("proxy", "HIT")
        metrics.record_cache_lookup("proxy", "HIT")

        assert registry.get_sample_value("cache_lookups_total", {"cache": "proxy", "status": "HIT"}) == 2.0

    def test_metrics_endpoint_is_public(self):
        service = PortalService(get_config("portal", 3000, session_secret="test-secret"))
        client = TestClient(service.app)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cache_lookups_total" in response.text

    def test_request_id_is_echoed(self):
        service = PortalService(get_config("portal", 3000, session_secret="test-secret"))
        client = TestClient(service.app)

        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
