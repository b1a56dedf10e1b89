"""
Unit tests for bulk grant resolution.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_rbac.app.rules.grants import GrantResolver
from service_rbac.app.rules.models import MemberRole, Permission, RolePermission


def member_role(role_id: str) -> MemberRole:
    return MemberRole(id=f"mr-{role_id}", user_id="user-1", role_id=role_id, organization_id="org-1")


def grant(grant_id: str, role_id: str, permission_id: str) -> RolePermission:
    return RolePermission(id=grant_id, role_id=role_id, permission_id=permission_id)


class TestGrantResolver:
    """Test cases for GrantResolver."""

    @pytest.fixture
    def store(self):
        """Mock store with two roles sharing one permission."""
        store = MagicMock()
        store.get_user_roles = AsyncMock(return_value=[member_role("r1"), member_role("r2")])

        grants_by_role = {
            "r1": [grant("g1", "r1", "p-read"), grant("g2", "r1", "p-write")],
            "r2": [grant("g3", "r2", "p-read"), grant("g4", "r2", "p-ghost")],
        }
        store.get_role_permissions = AsyncMock(side_effect=lambda role_id: grants_by_role[role_id])

        permissions = {
            "p-read": Permission(id="p-read", name="docs:read"),
            "p-write": Permission(id="p-write", name="docs:write"),
        }
        store.find_permission_by_id = AsyncMock(side_effect=lambda pid: permissions.get(pid))
        return store

    @pytest.fixture
    def resolver(self, store):
        return GrantResolver(store)

    @pytest.mark.asyncio
    async def test_no_roles_short_circuits(self, resolver, store):
        """Test no further queries are issued for users without roles."""
        store.get_user_roles.return_value = []

        resolved = await resolver.resolve_grants("user-1", "org-1")

        assert resolved.has_roles is False
        assert resolved.grants == []
        assert resolved.permissions == {}
        store.get_role_permissions.assert_not_called()
        store.find_permission_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_scope_passed_through(self, resolver, store):
        await resolver.resolve_grants("user-1", "org-9")
        store.get_user_roles.assert_awaited_once_with("user-1", "org-9")

    @pytest.mark.asyncio
    async def test_grants_concatenated_in_role_order(self, resolver):
        resolved = await resolver.resolve_grants("user-1", "org-1")

        assert [g.id for g in resolved.grants] == ["g1", "g2", "g3", "g4"]

    @pytest.mark.asyncio
    async def test_one_request_per_distinct_permission(self, resolver, store):
        await resolver.resolve_grants("user-1", "org-1")

        requested = [c.args[0] for c in store.find_permission_by_id.await_args_list]
        assert sorted(requested) == ["p-ghost", "p-read", "p-write"]

    @pytest.mark.asyncio
    async def test_duplicate_role_assignments_fetched_once(self, resolver, store):
        store.get_user_roles.return_value = [member_role("r1"), member_role("r1")]

        resolved = await resolver.resolve_grants("user-1")

        assert store.get_role_permissions.await_count == 1
        assert len(resolved.member_roles) == 2

    @pytest.mark.asyncio
    async def test_unknown_permission_dropped(self, resolver):
        """Test grants referencing missing permissions stay but have no definition."""
        resolved = await resolver.resolve_grants("user-1", "org-1")

        assert set(resolved.permissions) == {"p-read", "p-write"}
        assert "p-ghost" not in resolved.permissions

    @pytest.mark.asyncio
    async def test_role_fetches_run_concurrently(self, store):
        """Test per-role fetches overlap instead of running one after another."""
        in_flight = 0
        peak = 0

        async def slow_role_permissions(role_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return []

        store.get_role_permissions = AsyncMock(side_effect=slow_role_permissions)

        await GrantResolver(store).resolve_grants("user-1", "org-1")

        assert peak == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, resolver, store):
        store.find_permission_by_id = AsyncMock(side_effect=ConnectionError("gateway down"))

        with pytest.raises(ConnectionError):
            await resolver.resolve_grants("user-1", "org-1")
