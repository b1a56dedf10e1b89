"""
Structured logging for the RBAC service.

Component loggers are named ``<service>.<component>`` (``rbac.engine``,
``rbac.store``). Every event carries the service and component split out of
that name, the OpenTelemetry trace ids when a span is recording, and the
request, user and organization ids bound for the current request.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

try:
    from opentelemetry import trace
    HAS_OPENTELEMETRY = True
except ImportError:
    HAS_OPENTELEMETRY = False

EventDict = Dict[str, Any]

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
organization_id_var: ContextVar[Optional[str]] = ContextVar("organization_id", default=None)

# Event key -> context variable; explicit event keys win over bound values
CORRELATION_FIELDS: Dict[str, ContextVar] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "organization_id": organization_id_var,
}


def configure_logging(service_name: str, log_level: str = "info", json_logs: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    ``json_logs=False`` renders key/value lines for local runs.
    """
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_component_context,
            add_trace_context,
            add_correlation_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    structlog.get_logger(service_name).debug("Logging configured", json_logs=json_logs)


def add_component_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Split ``rbac.engine`` into ``service=rbac`` and ``component=engine``."""
    service, _, component = event_dict.get("logger", "").partition(".")
    if service:
        event_dict.setdefault("service", service)
    if component:
        event_dict.setdefault("component", component)
    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    if not HAS_OPENTELEMETRY:
        return event_dict

    span = trace.get_current_span()
    if span and span.is_recording():
        span_context = span.get_span_context()
        if span_context.trace_id:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id:
            event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key, var in CORRELATION_FIELDS.items():
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id, generating one when the caller sent none."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_user_context(user_id: Optional[str] = None, organization_id: Optional[str] = None):
    """Bind the subject of the current permission check."""
    if user_id:
        user_id_var.set(user_id)
    if organization_id:
        organization_id_var.set(organization_id)


def clear_context():
    for var in CORRELATION_FIELDS.values():
        var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
