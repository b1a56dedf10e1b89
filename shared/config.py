"""
Shared configuration management for the RBAC service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="RBAC_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment")
    log_level: str = Field(default="info", description="Root log level")

    # Persistence; unset means the in-memory gateway is used
    postgres_dsn: Optional[str] = Field(default=None, description="PostgreSQL DSN")
    postgres_min_pool_size: int = Field(default=2)
    postgres_max_pool_size: int = Field(default=10)
    postgres_command_timeout: float = Field(default=30.0)


class RbacConfig(BaseConfig):
    """Options recognised by the permission evaluation engine."""

    enable_audit_log: bool = Field(default=True, description="Record role assignment changes")
    enable_policy_engine: bool = Field(default=False, description="Let organization policies override role grants")
    cache_ttl: Optional[int] = Field(default=None, description="Accepted for compatibility; evaluation does not cache")
    ip_allowlist_fail_closed: bool = Field(
        default=False,
        description="Deny grants with an IP allowlist when the request carries no IP address"
    )


class ServiceConfig(RbacConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
