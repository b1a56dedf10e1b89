"""
Policy rule resolution.

Policies arrive ordered by descending priority. Within a policy, rules are
scanned in stored order. The first rule that matches anywhere in that scan
decides; if nothing matches there is no decision, which is not the same as
a deny.
"""

from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from shared.logging import get_logger
from .models import (
    Policy, PolicyRule, PolicyEffect, PolicyVerdict, PermissionContext,
    UnsupportedCondition, parse_policy_rules
)


class PolicyResolver:
    """Finds the first policy rule that applies to a request."""

    def __init__(self):
        self.logger = get_logger("rbac.policies")

    def resolve(self, policies: Iterable[Policy], context: PermissionContext) -> Optional[PolicyVerdict]:
        for policy in policies:
            try:
                rules = parse_policy_rules(policy.rules)
            except PydanticValidationError as e:
                self.logger.error("Error evaluating policy", policy_id=policy.id, error=str(e))
                continue

            for index, rule in enumerate(rules):
                if self.rule_matches(rule, context):
                    verdict = PolicyVerdict(
                        allowed=(rule.effect == PolicyEffect.ALLOW.value),
                        policy_id=policy.id,
                        rule_index=index
                    )
                    self.logger.debug(
                        "Policy rule matched",
                        policy_id=policy.id,
                        rule_index=index,
                        allowed=verdict.allowed
                    )
                    return verdict

        return None

    def rule_matches(self, rule: PolicyRule, context: PermissionContext) -> bool:
        if rule.resource and rule.resource != context.resource_type:
            return False

        if rule.action and not self._action_matches(rule.action, context):
            return False

        condition = rule.parsed_condition
        if isinstance(condition, UnsupportedCondition):
            # No expression language is implemented; the rule applies as written
            self.logger.debug("Policy rule condition not evaluated", expression=condition.expression)

        return True

    @staticmethod
    def _action_matches(rule_action: str, context: PermissionContext) -> bool:
        """Match the full action, or its tail after the ``<resource_type>:`` prefix."""
        if rule_action == context.action:
            return True
        return context.action == f"{context.resource_type}:{rule_action}"
