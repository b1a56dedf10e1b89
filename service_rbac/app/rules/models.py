"""
Data models for the RBAC service.

Entities are plain dataclasses that map to and from gateway records. Records
use camelCase field names (``organizationId``, ``isActive``); the mapping is
done by ``RecordMixin``. Serialized payloads stored on entities (grant
conditions, policy rule lists) are parsed into pydantic models at the
boundary so that malformed data is rejected as a whole.
"""

import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


_CAMEL_RE = re.compile(r"_([a-z])")
_HOURS_RE = re.compile(r"^(\d{1,2}):(\d{2})-(\d{1,2}):(\d{2})$")


def to_camel(name: str) -> str:
    """Convert ``snake_case`` to ``camelCase``."""
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordMixin:
    """Map dataclass entities to gateway records and back."""

    COLLECTION: ClassVar[str] = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            key = to_camel(f.name)
            if key in record:
                value = record[key]
            elif f.name in record:
                value = record[f.name]
            else:
                continue
            if f.type in (datetime, Optional[datetime]) and isinstance(value, str):
                value = datetime.fromisoformat(value)
            kwargs[f.name] = value
        return cls(**kwargs)

    def to_record(self, include_id: bool = True) -> Dict[str, Any]:
        record = {}
        for f in fields(self):
            if f.name == "id" and not include_id:
                continue
            record[to_camel(f.name)] = getattr(self, f.name)
        return record


# Entities

@dataclass
class Permission(RecordMixin):
    """A named capability, ``resource:action`` with optional ``*`` segments."""
    COLLECTION: ClassVar[str] = "permission"

    id: str
    name: str
    description: Optional[str] = None


@dataclass
class Role(RecordMixin):
    """Organization-scoped role. ``level`` orders the hierarchy listing only."""
    COLLECTION: ClassVar[str] = "role"

    id: str
    name: str
    organization_id: Optional[str] = None
    level: int = 0
    description: Optional[str] = None


@dataclass
class RolePermission(RecordMixin):
    """Grant of a permission to a role; ``granted=False`` is an explicit deny."""
    COLLECTION: ClassVar[str] = "rolePermission"

    id: str
    role_id: str
    permission_id: str
    granted: bool = True
    conditions: Optional[str] = None


@dataclass
class MemberRole(RecordMixin):
    COLLECTION: ClassVar[str] = "memberRole"

    id: str
    user_id: str
    role_id: str
    organization_id: Optional[str] = None
    team_id: Optional[str] = None
    assigned_by: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class Resource(RecordMixin):
    COLLECTION: ClassVar[str] = "resource"

    id: str
    organization_id: str
    type: str
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResourcePermission(RecordMixin):
    """Per-resource grant to a subject, independent of role grants."""
    COLLECTION: ClassVar[str] = "resourcePermission"

    id: str
    resource_id: str
    subject_type: str
    subject_id: str
    permission_id: str
    granted: bool = True


@dataclass
class Policy(RecordMixin):
    """Organization policy holding a serialized, ordered rule list."""
    COLLECTION: ClassVar[str] = "policy"

    id: str
    organization_id: str
    name: str
    rules: str = "[]"
    priority: int = 0
    is_active: bool = True
    description: Optional[str] = None


@dataclass
class AuditLog(RecordMixin):
    COLLECTION: ClassVar[str] = "auditLog"

    id: str
    action: str
    resource: str
    user_id: Optional[str] = None
    resource_id: Optional[str] = None
    organization_id: Optional[str] = None
    details: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)


# Evaluation request

class RequestConditions(BaseModel):
    """Caller-supplied request attributes (IP, MFA state, anything else)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    ip_address: Optional[str] = Field(None, alias="ipAddress")
    mfa_verified: Optional[bool] = Field(None, alias="mfaVerified")


class PermissionContext(BaseModel):
    """A single authorization question."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", description="User ID")
    organization_id: Optional[str] = Field(None, alias="organizationId", description="Organization scope")
    action: str = Field(..., description="Requested action, e.g. docs:read")
    resource_type: str = Field(..., alias="resourceType", description="Resource type, e.g. docs")
    conditions: RequestConditions = Field(default_factory=RequestConditions)


# Stored payloads

class ConditionSet(BaseModel):
    """Contextual restrictions attached to a grant.

    Unrecognized keys are ignored. Recognized keys with the wrong shape make
    the whole payload invalid.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    time_restricted: Optional[bool] = Field(None, alias="timeRestricted")
    allowed_hours: Optional[str] = Field(None, alias="allowedHours")
    allowed_days: Optional[List[str]] = Field(None, alias="allowedDays")
    ip_whitelist: Optional[List[str]] = Field(None, alias="ipWhitelist")
    require_mfa: Optional[bool] = Field(None, alias="requireMFA")

    @field_validator("allowed_hours")
    @classmethod
    def _validate_hours(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        match = _HOURS_RE.match(value.strip())
        if not match:
            raise ValueError(f"allowedHours must look like HH:MM-HH:MM, got {value!r}")
        start_h, start_m, end_h, end_m = (int(g) for g in match.groups())
        if start_h > 23 or end_h > 23 or start_m > 59 or end_m > 59:
            raise ValueError(f"allowedHours out of range: {value!r}")
        return value.strip()

    @classmethod
    def parse(cls, raw: str) -> "ConditionSet":
        """Parse a serialized condition set; raises on any malformation."""
        return cls.model_validate_json(raw)

    def hours_window(self) -> Tuple[int, int]:
        """Return the allowed window as ``(hhmm_start, hhmm_end)`` integers."""
        start_h, start_m, end_h, end_m = (int(g) for g in _HOURS_RE.match(self.allowed_hours).groups())
        return start_h * 100 + start_m, end_h * 100 + end_m


class PolicyEffect(str, Enum):
    """Policy rule effects. Any stored effect other than ``allow`` denies."""
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class NoCondition:
    """Rule carries no condition."""


@dataclass(frozen=True)
class UnsupportedCondition:
    """Rule carries a condition expression that is not evaluated.

    Rules with such a condition match as if the condition held.
    """
    expression: Any


RuleCondition = Union[NoCondition, UnsupportedCondition]


class PolicyRule(BaseModel):
    """One entry of a policy's ordered rule list."""

    model_config = ConfigDict(extra="ignore")

    resource: Optional[str] = None
    action: Optional[str] = None
    effect: Optional[str] = None
    condition: Any = None

    @property
    def parsed_condition(self) -> RuleCondition:
        if not self.condition:
            return NoCondition()
        return UnsupportedCondition(self.condition)


_RULE_LIST = TypeAdapter(List[PolicyRule])


def parse_policy_rules(raw: str) -> List[PolicyRule]:
    """Parse a serialized rule list; raises on any malformation."""
    return _RULE_LIST.validate_json(raw)


# Results

class EvaluationReason(str, Enum):
    """Why an evaluation ended the way it did."""
    NO_ROLE_ASSIGNMENTS = "no_role_assignments"
    ROLE_GRANT = "role_grant"
    NO_MATCHING_GRANT = "no_matching_grant"
    POLICY_ALLOW = "policy_allow"
    POLICY_DENY = "policy_deny"


@dataclass(frozen=True)
class PolicyVerdict:
    """Decisive outcome of policy resolution."""
    allowed: bool
    policy_id: str
    rule_index: int


@dataclass
class ResolvedGrants:
    """A user's role assignments, their grants and the referenced permissions."""
    member_roles: List[MemberRole] = field(default_factory=list)
    grants: List[RolePermission] = field(default_factory=list)
    permissions: Dict[str, Permission] = field(default_factory=dict)

    @property
    def has_roles(self) -> bool:
        return bool(self.member_roles)


@dataclass
class EvaluationResult:
    """Result of permission evaluation."""
    allowed: bool
    reason: EvaluationReason
    matched_permissions: List[str] = field(default_factory=list)
    policy_id: Optional[str] = None
    evaluation_time_ms: float = 0.0


# API models

class CheckPermissionRequest(BaseModel):
    """Request model for the permission-name convenience check."""
    user_id: str = Field(..., description="User ID")
    permission: str = Field(..., description="Permission name, e.g. docs:read")
    organization_id: Optional[str] = Field(None, description="Organization scope")


class PermissionCheckResponse(BaseModel):
    """Response model for permission checks."""
    allowed: bool = Field(..., description="Whether the action is allowed")
    reason: Optional[str] = Field(None, description="Reason for the decision")
    matched_permissions: List[str] = Field(default_factory=list)
    policy_id: Optional[str] = None


class MemberRoleCreateRequest(BaseModel):
    """Request model for assigning a role to a user."""
    user_id: str
    role_id: str
    organization_id: Optional[str] = None
    team_id: Optional[str] = None
    assigned_by: Optional[str] = None


class MemberRoleRemoveRequest(BaseModel):
    """Request model for removing a role from a user."""
    user_id: str
    role_id: str
    organization_id: Optional[str] = None
    removed_by: Optional[str] = None


class RoleCreateRequest(BaseModel):
    """Request model for creating a role."""
    name: str
    organization_id: Optional[str] = None
    level: int = 0
    description: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    """Request model for updating a role."""
    name: Optional[str] = None
    level: Optional[int] = None
    description: Optional[str] = None
