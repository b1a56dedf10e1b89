"""
RBAC service: HTTP surface for permission checks and role assignment.
"""

from typing import Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.logging import set_user_context

from .adapter import create_rbac_adapter
from .persistence.gateway import PersistenceGateway
from .persistence.memory import InMemoryGateway
from .persistence.postgres import PostgreSQLGateway
from .rules.models import (
    CheckPermissionRequest, MemberRoleCreateRequest, MemberRoleRemoveRequest,
    PermissionCheckResponse, PermissionContext, RoleCreateRequest, RoleUpdateRequest
)

SERVICE_NAME = "rbac"
SERVICE_PORT = 8013


class RbacService(BaseService):
    """RBAC service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, gateway: Optional[PersistenceGateway] = None):
        config = config or get_config(SERVICE_NAME, SERVICE_PORT)
        self.gateway = gateway or self._create_gateway(config)
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.rbac = create_rbac_adapter(self.gateway, self.config, metrics=self.metrics)

        self._setup_rbac_routes()

    @staticmethod
    def _create_gateway(config: ServiceConfig) -> PersistenceGateway:
        if config.postgres_dsn:
            return PostgreSQLGateway(
                config.postgres_dsn,
                min_size=config.postgres_min_pool_size,
                max_size=config.postgres_max_pool_size,
                command_timeout=config.postgres_command_timeout
            )
        return InMemoryGateway()

    def _setup_rbac_routes(self):
        """Set up RBAC-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "RBAC Service",
                "version": "1.0.0",
                "capabilities": self._capabilities()
            }

        @self.app.post("/rbac/check", response_model=PermissionCheckResponse)
        async def check(context: PermissionContext):
            """Evaluate a full permission context."""
            set_user_context(context.user_id, context.organization_id)
            result = await self.rbac.explain_permission(context)
            return PermissionCheckResponse(
                allowed=result.allowed,
                reason=result.reason.value,
                matched_permissions=result.matched_permissions,
                policy_id=result.policy_id
            )

        @self.app.post("/rbac/check-permission", response_model=PermissionCheckResponse)
        async def check_permission(request: CheckPermissionRequest):
            """Evaluate a permission name for a user."""
            set_user_context(request.user_id, request.organization_id)
            allowed = await self.rbac.check_permission(
                request.user_id,
                request.permission,
                request.organization_id
            )
            return PermissionCheckResponse(allowed=allowed)

        @self.app.get("/rbac/users/{user_id}/permissions")
        async def effective_permissions(
            user_id: str,
            organization_id: Optional[str] = Query(None, description="Organization scope")
        ):
            """List permission names granted to a user."""
            permissions = await self.rbac.get_effective_permissions(user_id, organization_id)
            return {"user_id": user_id, "organization_id": organization_id, "permissions": permissions}

        @self.app.post("/rbac/member-roles", status_code=201)
        async def assign_role(request: MemberRoleCreateRequest):
            """Assign a role to a user."""
            member_role = await self.rbac.assign_role_to_user(
                user_id=request.user_id,
                role_id=request.role_id,
                organization_id=request.organization_id,
                team_id=request.team_id,
                assigned_by=request.assigned_by
            )
            return member_role.to_record()

        @self.app.post("/rbac/member-roles/remove")
        async def remove_role(request: MemberRoleRemoveRequest):
            """Remove a role from a user."""
            await self.rbac.remove_role_from_user(
                user_id=request.user_id,
                role_id=request.role_id,
                organization_id=request.organization_id,
                removed_by=request.removed_by
            )
            return {"success": True}

        @self.app.get("/rbac/roles")
        async def list_roles(organization_id: Optional[str] = Query(None, description="Filter by organization")):
            """List roles ordered by level."""
            roles = await self.rbac.store.get_role_hierarchy(organization_id)
            return {"roles": [role.to_record() for role in roles], "total": len(roles)}

        @self.app.post("/rbac/roles", status_code=201)
        async def create_role(request: RoleCreateRequest):
            """Create a role."""
            role = await self.rbac.store.create_role(**request.model_dump())
            self.logger.info("Role created", role_id=role.id, name=role.name)
            return role.to_record()

        @self.app.put("/rbac/roles/{role_id}")
        async def update_role(role_id: str, request: RoleUpdateRequest):
            """Update a role."""
            role = await self.rbac.store.update_role(role_id, **request.model_dump(exclude_none=True))
            self.logger.info("Role updated", role_id=role.id, name=role.name)
            return role.to_record()

        @self.app.get("/rbac/audit-logs")
        async def audit_logs(
            organization_id: Optional[str] = Query(None),
            user_id: Optional[str] = Query(None),
            action: Optional[str] = Query(None),
            resource: Optional[str] = Query(None),
            limit: int = Query(100, ge=1, le=1000),
            offset: int = Query(0, ge=0)
        ):
            """List audit entries, newest first."""
            entries = await self.rbac.store.get_audit_logs(
                organization_id=organization_id,
                limit=limit,
                offset=offset,
                user_id=user_id,
                action=action,
                resource=resource
            )
            return {"entries": [entry.to_record() for entry in entries], "limit": limit, "offset": offset}

    def _capabilities(self):
        capabilities = ["role_grants", "conditions"]
        if self.config.enable_policy_engine:
            capabilities.append("policy_engine")
        if self.config.enable_audit_log:
            capabilities.append("audit_log")
        return capabilities

    async def _check_dependencies(self):
        """Check RBAC service dependencies."""
        healthy = await self.gateway.health_check()
        return {"persistence": "ok" if healthy else "error"}

    async def start(self):
        """Start RBAC service components."""
        await self.gateway.start()
        self.logger.info("RBAC service started", gateway=type(self.gateway).__name__)

    async def stop(self):
        """Stop RBAC service components."""
        await self.gateway.stop()
        self.logger.info("RBAC service stopped")


def create_app(config: Optional[ServiceConfig] = None, gateway: Optional[PersistenceGateway] = None):
    """Create RBAC service application."""
    service = RbacService(config=config, gateway=gateway)
    return service.app


if __name__ == "__main__":
    service = RbacService()
    service.run()
