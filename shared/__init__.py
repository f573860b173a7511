"""
Shared utilities for the ETL monitoring portal.

This package aggregates common building blocks consumed by the portal
service and its client runtime:

- config: Portal configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for transient upstream failures
- polling: Per-resource refetch intervals
- base_service: FastAPI service scaffolding
- test_helpers: Upstream stubs and test data factories

Any cross-package logic should live here to avoid import cycles. Do not
import from service_portal or portal_client into shared/.
"""
