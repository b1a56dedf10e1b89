"""
Typed record access for RBAC entities.

Thin layer over a ``PersistenceGateway``: builds equality filters, maps
records to dataclasses and raises ``EntityNotFoundError`` when an update or
delete by id finds nothing. Filter deletes (member roles, role grants) never
check existence.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from shared.errors import EntityNotFoundError
from shared.logging import get_logger
from .persistence.gateway import PersistenceGateway, SortBy, Where
from .rules.models import (
    AuditLog, MemberRole, Permission, Policy, Resource, ResourcePermission,
    Role, RolePermission, to_camel, utcnow
)

T = TypeVar("T")


def _camel_keys(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {to_camel(key): value for key, value in changes.items()}


class RbacStore:
    """CRUD accessors for every RBAC collection."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self.logger = get_logger("rbac.store")

    # Generic helpers

    async def _create(self, model: Type[T], **values) -> T:
        record = await self.gateway.create(model.COLLECTION, _camel_keys(values))
        return model.from_record(record)

    async def _find_by_id(self, model: Type[T], entity_id: str) -> Optional[T]:
        record = await self.gateway.find_one(model.COLLECTION, [Where("id", entity_id)])
        return model.from_record(record) if record else None

    async def _find_many(self, model: Type[T], where=None, **kwargs) -> List[T]:
        records = await self.gateway.find_many(model.COLLECTION, where, **kwargs)
        return [model.from_record(record) for record in records]

    async def _update_by_id(self, model: Type[T], entity_id: str, changes: Dict[str, Any]) -> T:
        changes.pop("id", None)
        record = await self.gateway.update(model.COLLECTION, [Where("id", entity_id)], _camel_keys(changes))
        if not record:
            raise EntityNotFoundError(model.__name__.lower(), entity_id)
        return model.from_record(record)

    async def _delete_by_id(self, model: Type[T], entity_id: str) -> None:
        where = [Where("id", entity_id)]
        if not await self.gateway.find_one(model.COLLECTION, where):
            raise EntityNotFoundError(model.__name__.lower(), entity_id)
        await self.gateway.delete(model.COLLECTION, where)

    # Permissions

    async def create_permission(self, name: str, description: Optional[str] = None) -> Permission:
        return await self._create(Permission, name=name, description=description)

    async def find_permission_by_id(self, permission_id: str) -> Optional[Permission]:
        return await self._find_by_id(Permission, permission_id)

    async def find_permission_by_name(self, name: str) -> Optional[Permission]:
        record = await self.gateway.find_one(Permission.COLLECTION, [Where("name", name)])
        return Permission.from_record(record) if record else None

    async def list_permissions(self) -> List[Permission]:
        return await self._find_many(Permission)

    async def update_permission(self, permission_id: str, **changes) -> Permission:
        return await self._update_by_id(Permission, permission_id, changes)

    async def delete_permission(self, permission_id: str) -> None:
        await self._delete_by_id(Permission, permission_id)

    # Roles

    async def create_role(
        self,
        name: str,
        organization_id: Optional[str] = None,
        level: int = 0,
        description: Optional[str] = None
    ) -> Role:
        return await self._create(
            Role, name=name, organization_id=organization_id, level=level, description=description
        )

    async def find_role_by_id(self, role_id: str) -> Optional[Role]:
        return await self._find_by_id(Role, role_id)

    async def find_roles_by_organization(self, organization_id: str) -> List[Role]:
        return await self._find_many(Role, [Where("organizationId", organization_id)])

    async def list_roles(self) -> List[Role]:
        return await self._find_many(Role)

    async def update_role(self, role_id: str, **changes) -> Role:
        return await self._update_by_id(Role, role_id, changes)

    async def delete_role(self, role_id: str) -> None:
        await self._delete_by_id(Role, role_id)

    async def get_role_hierarchy(self, organization_id: Optional[str] = None) -> List[Role]:
        """Roles ordered by ascending level. Levels do not propagate grants."""
        where = [Where("organizationId", organization_id)] if organization_id else []
        return await self._find_many(Role, where, sort_by=SortBy("level", "asc"))

    # Role permissions

    async def assign_permission_to_role(
        self,
        role_id: str,
        permission_id: str,
        granted: bool = True,
        conditions: Optional[str] = None
    ) -> RolePermission:
        return await self._create(
            RolePermission,
            role_id=role_id,
            permission_id=permission_id,
            granted=granted,
            conditions=conditions
        )

    async def remove_permission_from_role(self, role_id: str, permission_id: str) -> None:
        await self.gateway.delete(
            RolePermission.COLLECTION,
            [Where("roleId", role_id), Where("permissionId", permission_id)]
        )

    async def get_role_permissions(self, role_id: str) -> List[RolePermission]:
        return await self._find_many(RolePermission, [Where("roleId", role_id)])

    # Member roles

    async def create_member_role(
        self,
        user_id: str,
        role_id: str,
        organization_id: Optional[str] = None,
        team_id: Optional[str] = None,
        assigned_by: Optional[str] = None
    ) -> MemberRole:
        return await self._create(
            MemberRole,
            user_id=user_id,
            role_id=role_id,
            organization_id=organization_id,
            team_id=team_id,
            assigned_by=assigned_by,
            timestamp=utcnow()
        )

    async def delete_member_roles(self, user_id: str, role_id: str, organization_id: Optional[str] = None) -> None:
        where = [Where("userId", user_id), Where("roleId", role_id)]
        if organization_id:
            where.append(Where("organizationId", organization_id))
        await self.gateway.delete(MemberRole.COLLECTION, where)

    async def get_user_roles(self, user_id: str, organization_id: Optional[str] = None) -> List[MemberRole]:
        where = [Where("userId", user_id)]
        if organization_id:
            where.append(Where("organizationId", organization_id))
        return await self._find_many(MemberRole, where)

    # Resources

    async def create_resource(
        self,
        organization_id: str,
        type: str,
        attributes: Optional[Dict[str, Any]] = None
    ) -> Resource:
        return await self._create(
            Resource, organization_id=organization_id, type=type, attributes=attributes or {}
        )

    async def find_resource_by_id(self, resource_id: str) -> Optional[Resource]:
        return await self._find_by_id(Resource, resource_id)

    async def find_resources_by_organization(self, organization_id: str) -> List[Resource]:
        return await self._find_many(Resource, [Where("organizationId", organization_id)])

    async def update_resource(self, resource_id: str, **changes) -> Resource:
        return await self._update_by_id(Resource, resource_id, changes)

    async def delete_resource(self, resource_id: str) -> None:
        await self._delete_by_id(Resource, resource_id)

    # Resource permissions

    async def grant_resource_permission(
        self,
        resource_id: str,
        subject_type: str,
        subject_id: str,
        permission_id: str,
        granted: bool = True
    ) -> ResourcePermission:
        return await self._create(
            ResourcePermission,
            resource_id=resource_id,
            subject_type=subject_type,
            subject_id=subject_id,
            permission_id=permission_id,
            granted=granted
        )

    async def revoke_resource_permission(self, resource_permission_id: str) -> None:
        await self._delete_by_id(ResourcePermission, resource_permission_id)

    async def get_resource_permissions(self, resource_id: str) -> List[ResourcePermission]:
        return await self._find_many(ResourcePermission, [Where("resourceId", resource_id)])

    # Audit logs

    async def create_audit_log(self, **values) -> AuditLog:
        return await self._create(AuditLog, **values)

    async def get_audit_logs(
        self,
        organization_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource: Optional[str] = None
    ) -> List[AuditLog]:
        where = []
        if organization_id:
            where.append(Where("organizationId", organization_id))
        if user_id:
            where.append(Where("userId", user_id))
        if action:
            where.append(Where("action", action))
        if resource:
            where.append(Where("resource", resource))

        return await self._find_many(
            AuditLog,
            where,
            limit=limit,
            offset=offset,
            sort_by=SortBy("timestamp", "desc")
        )

    # Policies

    async def create_policy(
        self,
        organization_id: str,
        name: str,
        rules: str = "[]",
        priority: int = 0,
        is_active: bool = True,
        description: Optional[str] = None
    ) -> Policy:
        return await self._create(
            Policy,
            organization_id=organization_id,
            name=name,
            rules=rules,
            priority=priority,
            is_active=is_active,
            description=description
        )

    async def find_policy_by_id(self, policy_id: str) -> Optional[Policy]:
        return await self._find_by_id(Policy, policy_id)

    async def get_policies_for_organization(self, organization_id: str) -> List[Policy]:
        """Active policies for an organization, highest priority first."""
        return await self._find_many(
            Policy,
            [Where("organizationId", organization_id), Where("isActive", True)],
            sort_by=SortBy("priority", "desc")
        )

    async def update_policy(self, policy_id: str, **changes) -> Policy:
        return await self._update_by_id(Policy, policy_id, changes)

    async def delete_policy(self, policy_id: str) -> None:
        await self._delete_by_id(Policy, policy_id)
