"""
Public RBAC operations.

``RbacAdapter`` is the entry point callers use: it owns the store, the
evaluation engine and the audit recorder, all supplied at construction.
``create_rbac_adapter`` wires the default collaborators for a gateway.
"""

from datetime import datetime
from typing import Callable, List, Optional

from shared.config import RbacConfig
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .audit.recorder import AuditAction, AuditRecorder
from .persistence.gateway import PersistenceGateway
from .rules.conditions import ConditionEvaluator
from .rules.engine import PermissionEvaluationEngine
from .rules.grants import GrantResolver
from .rules.matcher import PermissionMatcher
from .rules.models import EvaluationResult, MemberRole, PermissionContext
from .rules.policies import PolicyResolver
from .store import RbacStore

MEMBER_ROLE_RESOURCE = "member_role"


def build_context(user_id: str, permission: str, organization_id: Optional[str] = None) -> PermissionContext:
    """Synthesize a context from a permission name such as ``docs:read``."""
    prefix, separator, _ = permission.partition(":")
    resource_type = prefix if separator and prefix else "unknown"
    return PermissionContext(
        user_id=user_id,
        organization_id=organization_id,
        action=permission,
        resource_type=resource_type
    )


class RbacAdapter:
    """Role assignment, evaluation and lookup operations."""

    def __init__(
        self,
        store: RbacStore,
        engine: PermissionEvaluationEngine,
        grant_resolver: GrantResolver,
        audit: AuditRecorder,
    ):
        self.store = store
        self.engine = engine
        self.grant_resolver = grant_resolver
        self.audit = audit
        self.logger = get_logger("rbac.adapter")

    # Role assignment

    async def assign_role_to_user(
        self,
        user_id: str,
        role_id: str,
        organization_id: Optional[str] = None,
        team_id: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> MemberRole:
        member_role = await self.store.create_member_role(
            user_id=user_id,
            role_id=role_id,
            organization_id=organization_id,
            team_id=team_id,
            assigned_by=assigned_by
        )
        self.logger.info("Role assigned", user_id=user_id, role_id=role_id, organization_id=organization_id)

        await self.audit.record(
            AuditAction.ROLE_ASSIGNED,
            MEMBER_ROLE_RESOURCE,
            user_id=assigned_by,
            organization_id=organization_id,
            resource_id=member_role.id,
            details={"targetUserId": user_id, "roleId": role_id, "teamId": team_id}
        )

        return member_role

    async def remove_role_from_user(
        self,
        user_id: str,
        role_id: str,
        organization_id: Optional[str] = None,
        removed_by: Optional[str] = None,
    ) -> None:
        """Remove matching assignments; removing an absent assignment is fine.

        The removal is audited only when the acting user is known.
        """
        await self.store.delete_member_roles(user_id, role_id, organization_id)
        self.logger.info("Role removed", user_id=user_id, role_id=role_id, organization_id=organization_id)

        if removed_by:
            await self.audit.record(
                AuditAction.ROLE_REMOVED,
                MEMBER_ROLE_RESOURCE,
                user_id=removed_by,
                organization_id=organization_id,
                details={"targetUserId": user_id, "roleId": role_id}
            )

    # Evaluation

    async def evaluate_permission(self, context: PermissionContext) -> bool:
        return await self.engine.evaluate(context)

    async def explain_permission(self, context: PermissionContext) -> EvaluationResult:
        return await self.engine.explain(context)

    async def check_permission(
        self,
        user_id: str,
        permission: str,
        organization_id: Optional[str] = None,
        context: Optional[PermissionContext] = None,
    ) -> bool:
        if context is None:
            context = build_context(user_id, permission, organization_id)
        return await self.engine.evaluate(context)

    async def get_effective_permissions(self, user_id: str, organization_id: Optional[str] = None) -> List[str]:
        """Names of permissions granted to the user, ignoring grant conditions."""
        resolved = await self.grant_resolver.resolve_grants(user_id, organization_id)
        names = []
        for grant in resolved.grants:
            permission = resolved.permissions.get(grant.permission_id)
            if grant.granted and permission is not None and permission.name not in names:
                names.append(permission.name)
        return names


def create_rbac_adapter(
    gateway: PersistenceGateway,
    config: Optional[RbacConfig] = None,
    clock: Optional[Callable[[], datetime]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> RbacAdapter:
    """Wire an adapter and its collaborators around ``gateway``."""
    config = config or RbacConfig()
    store = RbacStore(gateway)

    grant_resolver = GrantResolver(store)
    condition_evaluator = ConditionEvaluator(
        clock=clock,
        ip_allowlist_fail_closed=config.ip_allowlist_fail_closed
    )
    engine = PermissionEvaluationEngine(
        store=store,
        grant_resolver=grant_resolver,
        matcher=PermissionMatcher(condition_evaluator),
        policy_resolver=PolicyResolver(),
        config=config,
        metrics=metrics
    )
    audit = AuditRecorder(store, enabled=config.enable_audit_log, metrics=metrics)

    return RbacAdapter(store=store, engine=engine, grant_resolver=grant_resolver, audit=audit)
