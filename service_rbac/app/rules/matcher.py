"""
Structural permission matching.
"""

from .conditions import ConditionEvaluator
from .models import Permission, PermissionContext, RolePermission

WILDCARD = "*"


def name_matches(permission_name: str, action: str) -> bool:
    """Segment-wise match of ``resource:action`` names with ``*`` wildcards."""
    permission_parts = permission_name.split(":")
    action_parts = action.split(":")

    if len(permission_parts) != len(action_parts):
        return False

    return all(
        expected == WILDCARD or expected == actual
        for expected, actual in zip(permission_parts, action_parts)
    )


class PermissionMatcher:
    """Decides whether a single grant satisfies a request."""

    def __init__(self, condition_evaluator: ConditionEvaluator):
        self.condition_evaluator = condition_evaluator

    def matches(self, permission: Permission, grant: RolePermission, context: PermissionContext) -> bool:
        if not name_matches(permission.name, context.action):
            return False

        if grant.conditions:
            return grant.granted and self.condition_evaluator.evaluate(grant.conditions, context)

        return grant.granted
