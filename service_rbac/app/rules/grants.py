"""
Bulk resolution of a user's role grants.

The gateway only supports equality filters, so grants and permission
definitions cannot be fetched with a single ``IN`` query. Instead the
per-role and per-permission lookups are issued concurrently and awaited
together.
"""

import asyncio
from typing import Optional

from shared.logging import get_logger
from .models import ResolvedGrants


class GrantResolver:
    """Fetches roles, grants and permission definitions for one user."""

    def __init__(self, store):
        self.store = store
        self.logger = get_logger("rbac.grants")

    async def resolve_grants(self, user_id: str, organization_id: Optional[str] = None) -> ResolvedGrants:
        member_roles = await self.store.get_user_roles(user_id, organization_id)
        if not member_roles:
            return ResolvedGrants()

        role_ids = list(dict.fromkeys(member_role.role_id for member_role in member_roles))
        grant_lists = await asyncio.gather(
            *(self.store.get_role_permissions(role_id) for role_id in role_ids)
        )
        grants = [grant for grant_list in grant_lists for grant in grant_list]

        permission_ids = list(dict.fromkeys(grant.permission_id for grant in grants))
        definitions = await asyncio.gather(
            *(self.store.find_permission_by_id(permission_id) for permission_id in permission_ids)
        )
        permissions = {
            permission.id: permission
            for permission in definitions
            if permission is not None
        }

        if len(permissions) < len(permission_ids):
            self.logger.debug(
                "Grants reference unknown permissions",
                user_id=user_id,
                missing=sorted(set(permission_ids) - set(permissions))
            )

        return ResolvedGrants(member_roles=member_roles, grants=grants, permissions=permissions)
