"""
Audit trail for role assignment changes.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..rules.models import AuditLog, utcnow


class AuditAction(str, Enum):
    """Recorded audit actions."""
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    ROLE_REMOVED = "ROLE_REMOVED"


class AuditRecorder:
    """Writes audit entries through the store when auditing is enabled.

    Writes are awaited inline; a failed write propagates to whoever
    triggered it.
    """

    def __init__(self, store, enabled: bool = True, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.enabled = enabled
        self.metrics = metrics
        self.logger = get_logger("rbac.audit")

    async def record(
        self,
        action: str,
        resource: str,
        user_id: Optional[str],
        organization_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        if not self.enabled:
            return None

        action = action.value if isinstance(action, AuditAction) else action
        entry = await self.store.create_audit_log(
            action=action,
            resource=resource,
            resource_id=resource_id,
            user_id=user_id,
            organization_id=organization_id,
            details=json.dumps(details) if details is not None else None,
            timestamp=utcnow()
        )

        self.logger.info(
            "Audit entry recorded",
            action=action,
            resource=resource,
            resource_id=resource_id,
            actor=user_id
        )
        if self.metrics:
            self.metrics.record_audit_event(action)

        return entry
