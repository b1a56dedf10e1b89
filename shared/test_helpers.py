"""
Test helper functions and factory methods for the RBAC service.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional


# Wednesday 3 January 2024, 10:30 local time
FIXED_NOW = datetime(2024, 1, 3, 10, 30)


def fixed_clock(moment: datetime = FIXED_NOW):
    """Return a clock callable that always reports ``moment``."""
    return lambda: moment


@dataclass
class SeededGrant:
    """Identifiers created by ``RbacDataFactory.seed_grant``."""
    user_id: str
    organization_id: Optional[str]
    role_id: str
    permission_id: str
    grant_id: str


class RbacDataFactory:
    """Factory for creating RBAC test data."""

    @staticmethod
    def conditions(**restrictions: Any) -> str:
        """Serialize a restriction set the way grants store it."""
        return json.dumps(restrictions)

    @staticmethod
    def rules(*rules: Dict[str, Any]) -> str:
        """Serialize an ordered policy rule list."""
        return json.dumps(list(rules))

    @staticmethod
    async def seed_grant(
        store,
        permission_name: str,
        user_id: str = "user-1",
        organization_id: Optional[str] = "org-1",
        granted: bool = True,
        conditions: Optional[str] = None,
        role_name: str = "editor",
        level: int = 10,
    ) -> SeededGrant:
        """Create a role holding one grant and assign it to ``user_id``."""
        permission = await store.find_permission_by_name(permission_name)
        if permission is None:
            permission = await store.create_permission(permission_name)

        role = await store.create_role(role_name, organization_id=organization_id, level=level)
        grant = await store.assign_permission_to_role(
            role.id, permission.id, granted=granted, conditions=conditions
        )
        await store.create_member_role(
            user_id=user_id,
            role_id=role.id,
            organization_id=organization_id,
            assigned_by="admin"
        )
        return SeededGrant(
            user_id=user_id,
            organization_id=organization_id,
            role_id=role.id,
            permission_id=permission.id,
            grant_id=grant.id
        )

    @staticmethod
    async def seed_policy(
        store,
        rules: List[Dict[str, Any]],
        organization_id: str = "org-1",
        priority: int = 0,
        is_active: bool = True,
        name: str = "policy",
    ):
        """Create a policy holding ``rules``."""
        return await store.create_policy(
            organization_id=organization_id,
            name=name,
            rules=json.dumps(rules),
            priority=priority,
            is_active=is_active
        )
