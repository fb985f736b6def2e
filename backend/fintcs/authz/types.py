"""Value types shared by the authorization engine.

Everything here is immutable and constructed fresh per call.  Nothing in
``fintcs.authz`` performs I/O or imports the web / ORM stack.
"""
from __future__ import annotations

import dataclasses
import enum


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class Role(str, enum.Enum):
    """Closed set of roles.  Values match the ``role`` claim in issued tokens."""

    SUPER_ADMIN = "SuperAdmin"
    SOCIETY_ADMIN = "SocietyAdmin"
    REGULAR_USER = "User"
    MEMBER = "Member"

    @property
    def rank(self) -> int:
        """Privilege rank, only used for elevation checks."""
        return _ROLE_RANK[self]

    @classmethod
    def parse(cls, value: object) -> Role | None:
        """Return the matching role, or ``None`` for anything unrecognised."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        value = _ROLE_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return None


_ROLE_RANK: dict[Role, int] = {
    Role.SUPER_ADMIN: 3,
    Role.SOCIETY_ADMIN: 2,
    Role.REGULAR_USER: 1,
    Role.MEMBER: 0,
}

_ROLE_ALIASES: dict[str, str] = {"RegularUser": Role.REGULAR_USER.value}


# ---------------------------------------------------------------------------
# Resources and actions
# ---------------------------------------------------------------------------


class ResourceType(str, enum.Enum):
    SOCIETY = "Society"
    USER = "User"
    MEMBER = "Member"
    LOAN = "Loan"
    VOUCHER = "Voucher"
    MONTHLY_DEMAND = "MonthlyDemand"
    DASHBOARD = "Dashboard"


class Action(str, enum.Enum):
    LIST = "List"
    READ = "Read"
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"

    @property
    def is_read(self) -> bool:
        return self in (Action.LIST, Action.READ)


class DenyReason(str, enum.Enum):
    INSUFFICIENT_ROLE = "InsufficientRole"
    SELF_ELEVATION_BLOCKED = "SelfElevationBlocked"
    CROSS_TENANT_ACCESS = "CrossTenantAccess"
    MISSING_TENANT_CONTEXT = "MissingTenantContext"
    UNAUTHENTICATED = "Unauthenticated"


# ---------------------------------------------------------------------------
# Principal / resource descriptor
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Principal:
    """The authenticated caller for one request.

    ``tenant_id`` is the caller's society.  An empty string is treated the
    same as a missing tenant, since tokens for SuperAdmin accounts carry
    ``society_id=""``.
    """

    user_id: str
    role: Role
    tenant_id: str | None = None
    username: str | None = None

    def __post_init__(self) -> None:
        if self.tenant_id == "":
            object.__setattr__(self, "tenant_id", None)

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN


@dataclasses.dataclass(frozen=True)
class ResourceDescriptor:
    resource_type: ResourceType
    owner_tenant_id: str | None = None


# ---------------------------------------------------------------------------
# Scope and decisions
# ---------------------------------------------------------------------------


class ScopeKind(str, enum.Enum):
    UNRESTRICTED = "Unrestricted"
    RESTRICTED_TO_TENANT = "RestrictedToTenant"
    DENY_ALL = "DenyAll"


@dataclasses.dataclass(frozen=True)
class ScopeConstraint:
    kind: ScopeKind
    tenant_id: str | None = None

    @classmethod
    def unrestricted(cls) -> ScopeConstraint:
        return cls(ScopeKind.UNRESTRICTED)

    @classmethod
    def tenant(cls, tenant_id: str) -> ScopeConstraint:
        return cls(ScopeKind.RESTRICTED_TO_TENANT, tenant_id)

    @classmethod
    def deny_all(cls) -> ScopeConstraint:
        return cls(ScopeKind.DENY_ALL)


@dataclasses.dataclass(frozen=True)
class Decision:
    permitted: bool
    scope: ScopeConstraint | None = None
    reason: DenyReason | None = None

    @classmethod
    def allow(cls, scope: ScopeConstraint) -> Decision:
        return cls(True, scope=scope)

    @classmethod
    def deny(cls, reason: DenyReason) -> Decision:
        return cls(False, reason=reason)
