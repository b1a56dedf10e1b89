"""
Shared error handling for the RBAC service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

try:
    from opentelemetry import trace
    HAS_OPENTELEMETRY = True
except ImportError:
    HAS_OPENTELEMETRY = False


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for the RBAC service."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        if HAS_OPENTELEMETRY:
            current_span = trace.get_current_span()
            if current_span and current_span.is_recording():
                span_context = current_span.get_span_context()
                if span_context.trace_id != 0:
                    trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class EntityNotFoundError(AccessLayerException):
    """An update or lookup by explicit ID found nothing."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            "ENTITY_NOT_FOUND",
            f"{entity.capitalize()} with id {entity_id} not found",
            {"entity": entity, "entity_id": entity_id}
        )


class GatewayError(AccessLayerException):
    """Persistence gateway could not be reached or initialised."""

    status_code = 503

    def __init__(self, message: str = "Persistence gateway error", details: Optional[Dict[str, Any]] = None):
        super().__init__("GATEWAY_ERROR", message, details)
