"""
Shared utilities for the RBAC service.

This package aggregates common building blocks consumed by the service:

- config: Service and engine configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI application skeleton (health, metrics, handlers)

Do not import from service_* packages into shared/.
"""
