"""Guard against granting (or touching) roles at or above the caller's own."""
from __future__ import annotations

from fintcs.authz.types import Decision, DenyReason, Principal, Role, ScopeConstraint


def check_elevation(principal: Principal, target_role: Role | str) -> Decision:
    """Allow iff the caller strictly outranks *target_role*.

    SuperAdmin is exempt.  A target role that cannot be parsed is denied,
    since it cannot be shown to rank below the caller.
    """
    if principal.is_super_admin:
        return Decision.allow(ScopeConstraint.unrestricted())

    caller = Role.parse(principal.role)
    target = Role.parse(target_role)
    if caller is None or target is None or caller.rank <= target.rank:
        return Decision.deny(DenyReason.SELF_ELEVATION_BLOCKED)
    return Decision.allow(ScopeConstraint.unrestricted())
