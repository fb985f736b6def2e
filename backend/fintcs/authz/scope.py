"""Tenant scoping for reads and writes.

``read_constraint`` yields the predicate every list/read query must AND into
its WHERE clause.  ``write_transform`` yields the society id a write must
carry.  Neither ever lets a restricted principal reach another tenant.
"""
from __future__ import annotations

import dataclasses
import enum

from fintcs.authz.types import DenyReason, Principal, ScopeConstraint, ScopeKind


class PredicateKind(str, enum.Enum):
    NO_CONSTRAINT = "NoConstraint"
    TENANT_EQUALS = "TenantEquals"
    MATCH_NOTHING = "MatchNothing"


@dataclasses.dataclass(frozen=True)
class PredicateSpec:
    kind: PredicateKind
    tenant_id: str | None = None

    def matches(self, tenant_id: str | None) -> bool:
        """Evaluate the predicate against a single row's society id."""
        if self.kind is PredicateKind.NO_CONSTRAINT:
            return True
        if self.kind is PredicateKind.TENANT_EQUALS:
            return tenant_id is not None and tenant_id == self.tenant_id
        return False


NO_CONSTRAINT = PredicateSpec(PredicateKind.NO_CONSTRAINT)
MATCH_NOTHING = PredicateSpec(PredicateKind.MATCH_NOTHING)


@dataclasses.dataclass(frozen=True)
class WriteResult:
    """Outcome of ``write_transform``.

    ``tenant_id`` is the society id the write must use when ``rejected`` is
    false.  ``None`` there means "no tenant" (e.g. creating a society) or,
    for unrestricted updates, "leave as is".
    """

    rejected: bool
    tenant_id: str | None = None
    reason: DenyReason | None = None
    overridden: bool = False


def read_constraint(principal: Principal, scope: ScopeConstraint) -> PredicateSpec:
    if scope.kind is ScopeKind.UNRESTRICTED:
        return NO_CONSTRAINT
    if scope.kind is ScopeKind.RESTRICTED_TO_TENANT and scope.tenant_id:
        return PredicateSpec(PredicateKind.TENANT_EQUALS, scope.tenant_id)
    return MATCH_NOTHING


def write_transform(
    principal: Principal,
    scope: ScopeConstraint,
    proposed_tenant_id: str | None,
) -> WriteResult:
    """Resolve the society id a write lands on.

    A restricted scope always wins over whatever the client sent.
    """
    if scope.kind is ScopeKind.UNRESTRICTED:
        return WriteResult(rejected=False, tenant_id=proposed_tenant_id)
    if scope.kind is ScopeKind.RESTRICTED_TO_TENANT and scope.tenant_id:
        overridden = proposed_tenant_id is not None and proposed_tenant_id != scope.tenant_id
        return WriteResult(rejected=False, tenant_id=scope.tenant_id, overridden=overridden)
    return WriteResult(rejected=True, reason=DenyReason.MISSING_TENANT_CONTEXT)
