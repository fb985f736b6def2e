"""Role/resource permission table and the coarse-grained policy decision.

The table is the source of truth: granting a role an action on a resource
type, or adding a resource type, is a change to ``POLICY`` and
``TENANT_SCOPED`` only.
"""
from __future__ import annotations

from fintcs.authz.types import (
    Action,
    Decision,
    DenyReason,
    Principal,
    ResourceType,
    Role,
    ScopeConstraint,
    ScopeKind,
)

# ---------------------------------------------------------------------------
# Role groups
# ---------------------------------------------------------------------------

SUPER_ONLY: frozenset[Role] = frozenset({Role.SUPER_ADMIN})
TENANT_ADMINS: frozenset[Role] = frozenset({Role.SUPER_ADMIN, Role.SOCIETY_ADMIN})
EVERYONE: frozenset[Role] = frozenset(Role)


def _all_actions(roles: frozenset[Role]) -> dict[Action, frozenset[Role]]:
    return {action: roles for action in Action}


# ---------------------------------------------------------------------------
# Resource type -> action -> roles permitted
# ---------------------------------------------------------------------------

POLICY: dict[ResourceType, dict[Action, frozenset[Role]]] = {
    # ── Society ──────────────────────────────────────────────────────────
    # Any signed-in principal may browse the society directory.
    ResourceType.SOCIETY: {
        Action.LIST: EVERYONE,
        Action.READ: EVERYONE,
        Action.CREATE: SUPER_ONLY,
        Action.UPDATE: SUPER_ONLY,
        Action.DELETE: SUPER_ONLY,
    },

    # ── User ─────────────────────────────────────────────────────────────
    # Hard delete is SuperAdmin only; deactivation is an Update.
    ResourceType.USER: {
        Action.LIST: TENANT_ADMINS,
        Action.READ: TENANT_ADMINS,
        Action.CREATE: TENANT_ADMINS,
        Action.UPDATE: TENANT_ADMINS,
        Action.DELETE: SUPER_ONLY,
    },

    # ── Society ledgers ──────────────────────────────────────────────────
    ResourceType.MEMBER: _all_actions(TENANT_ADMINS),
    ResourceType.LOAN: _all_actions(TENANT_ADMINS),
    ResourceType.VOUCHER: _all_actions(TENANT_ADMINS),
    ResourceType.MONTHLY_DEMAND: _all_actions(TENANT_ADMINS),

    # ── Dashboard ────────────────────────────────────────────────────────
    # Read-only aggregates over the caller's own society.
    ResourceType.DASHBOARD: {
        Action.LIST: EVERYONE,
        Action.READ: EVERYONE,
    },
}

# Resource types whose rows carry a society id and are isolated per tenant.
TENANT_SCOPED: frozenset[ResourceType] = frozenset({
    ResourceType.USER,
    ResourceType.MEMBER,
    ResourceType.LOAN,
    ResourceType.VOUCHER,
    ResourceType.MONTHLY_DEMAND,
    ResourceType.DASHBOARD,
})


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        return None


def decide(principal: Principal, action: Action, resource_type: ResourceType) -> Decision:
    """Answer whether *principal* may perform *action* on *resource_type*.

    Never raises; unknown roles, actions or resource types fall through to
    ``Deny(InsufficientRole)``.
    """
    role = Role.parse(principal.role)
    action = _coerce(Action, action)
    resource_type = _coerce(ResourceType, resource_type)
    if role is None or action is None or resource_type is None:
        return Decision.deny(DenyReason.INSUFFICIENT_ROLE)

    if role is Role.SUPER_ADMIN:
        return Decision.allow(ScopeConstraint.unrestricted())

    permitted = POLICY.get(resource_type, {}).get(action, frozenset())
    if role not in permitted:
        return Decision.deny(DenyReason.INSUFFICIENT_ROLE)

    if resource_type not in TENANT_SCOPED:
        return Decision.allow(ScopeConstraint.unrestricted())
    if not principal.tenant_id:
        return Decision.allow(ScopeConstraint.deny_all())
    return Decision.allow(ScopeConstraint.tenant(principal.tenant_id))


def allowed_actions(principal: Principal, resource_type: ResourceType) -> list[Action]:
    """Return the actions the caller can actually exercise, in declaration order."""
    actions = []
    for action in Action:
        decision = decide(principal, action, resource_type)
        if decision.permitted and decision.scope.kind is not ScopeKind.DENY_ALL:
            actions.append(action)
    return actions
