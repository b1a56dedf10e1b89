"""
Permission evaluation engine.
"""

import time
from typing import List, Optional

from shared.config import RbacConfig
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .grants import GrantResolver
from .matcher import PermissionMatcher
from .models import (
    EvaluationReason, EvaluationResult, PermissionContext, ResolvedGrants
)
from .policies import PolicyResolver


class PermissionEvaluationEngine:
    """Combines role grants with the optional policy override.

    Evaluation order is fixed: no role assignment denies outright, then the
    role-based verdict is computed, then active organization policies (when
    enabled and the request is organization-scoped) may replace it.
    """

    def __init__(
        self,
        store,
        grant_resolver: GrantResolver,
        matcher: PermissionMatcher,
        policy_resolver: PolicyResolver,
        config: RbacConfig,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.grant_resolver = grant_resolver
        self.matcher = matcher
        self.policy_resolver = policy_resolver
        self.config = config
        self.metrics = metrics
        self.logger = get_logger("rbac.engine")

    async def evaluate(self, context: PermissionContext) -> bool:
        result = await self.explain(context)
        return result.allowed

    async def explain(self, context: PermissionContext) -> EvaluationResult:
        """Evaluate ``context`` and report why the decision was reached."""
        start_time = time.time()

        resolved = await self.grant_resolver.resolve_grants(context.user_id, context.organization_id)
        if not resolved.has_roles:
            return self._finish(
                context, start_time,
                EvaluationResult(allowed=False, reason=EvaluationReason.NO_ROLE_ASSIGNMENTS)
            )

        matched = self._matching_permissions(resolved, context)
        has_permission = bool(matched)

        if self.config.enable_policy_engine and context.organization_id:
            policies = await self.store.get_policies_for_organization(context.organization_id)
            verdict = self.policy_resolver.resolve(policies, context)
            if verdict is not None:
                reason = EvaluationReason.POLICY_ALLOW if verdict.allowed else EvaluationReason.POLICY_DENY
                return self._finish(
                    context, start_time,
                    EvaluationResult(
                        allowed=verdict.allowed,
                        reason=reason,
                        matched_permissions=matched,
                        policy_id=verdict.policy_id
                    )
                )

        reason = EvaluationReason.ROLE_GRANT if has_permission else EvaluationReason.NO_MATCHING_GRANT
        return self._finish(
            context, start_time,
            EvaluationResult(allowed=has_permission, reason=reason, matched_permissions=matched)
        )

    def _matching_permissions(self, resolved: ResolvedGrants, context: PermissionContext) -> List[str]:
        matched = []
        for grant in resolved.grants:
            permission = resolved.permissions.get(grant.permission_id)
            if permission is None:
                continue
            if self.matcher.matches(permission, grant, context):
                matched.append(permission.name)
        return matched

    def _finish(self, context: PermissionContext, start_time: float, result: EvaluationResult) -> EvaluationResult:
        duration = time.time() - start_time
        result.evaluation_time_ms = duration * 1000

        self.logger.debug(
            "Permission evaluated",
            user_id=context.user_id,
            organization_id=context.organization_id,
            action=context.action,
            resource_type=context.resource_type,
            allowed=result.allowed,
            reason=result.reason.value,
            policy_id=result.policy_id
        )
        if self.metrics:
            self.metrics.record_evaluation(result.allowed, result.reason.value, duration)

        return result
