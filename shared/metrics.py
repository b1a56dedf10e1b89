"""
Shared metrics configuration for the RBAC service.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector registers into its own ``CollectorRegistry`` so that
    several services (or test fixtures) can coexist in one process.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_rbac_metrics()

    def _setup_rbac_metrics(self):
        """Set up permission evaluation and audit metrics."""
        self._metrics["permission_evaluations_total"] = Counter(
            "permission_evaluations_total",
            "Total permission evaluations",
            ["decision", "reason"],
            registry=self.registry
        )

        self._metrics["permission_evaluation_duration_seconds"] = Histogram(
            "permission_evaluation_duration_seconds",
            "Permission evaluation duration in seconds",
            registry=self.registry
        )

        self._metrics["audit_events_total"] = Counter(
            "audit_events_total",
            "Total audit entries written",
            ["action"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_evaluation(self, allowed: bool, reason: str, duration: float):
        """Record the outcome of one permission evaluation."""
        decision = "allow" if allowed else "deny"
        self._metrics["permission_evaluations_total"].labels(decision=decision, reason=reason).inc()
        self._metrics["permission_evaluation_duration_seconds"].observe(duration)

    def record_audit_event(self, action: str):
        """Record an audit entry write."""
        self._metrics["audit_events_total"].labels(action=action).inc()

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
