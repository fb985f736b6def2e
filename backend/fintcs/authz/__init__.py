"""Tenant-scoped authorization engine.

Pure functions over explicit inputs; no I/O, no ambient "current user".
"""
from fintcs.authz.elevation import check_elevation
from fintcs.authz.mediator import (
    AuthorizationDenied,
    AuthzEvent,
    CrossTenantAttempt,
    Mediator,
    MediatorResult,
    Outcome,
    authorize,
    authorize_resource,
)
from fintcs.authz.policy import POLICY, TENANT_SCOPED, allowed_actions, decide
from fintcs.authz.scope import (
    MATCH_NOTHING,
    NO_CONSTRAINT,
    PredicateKind,
    PredicateSpec,
    WriteResult,
    read_constraint,
    write_transform,
)
from fintcs.authz.types import (
    Action,
    Decision,
    DenyReason,
    Principal,
    ResourceDescriptor,
    ResourceType,
    Role,
    ScopeConstraint,
    ScopeKind,
)

__all__ = [
    # Types
    "Action",
    "Decision",
    "DenyReason",
    "Principal",
    "ResourceDescriptor",
    "ResourceType",
    "Role",
    "ScopeConstraint",
    "ScopeKind",
    # Policy engine
    "POLICY",
    "TENANT_SCOPED",
    "allowed_actions",
    "decide",
    # Scope filter
    "MATCH_NOTHING",
    "NO_CONSTRAINT",
    "PredicateKind",
    "PredicateSpec",
    "WriteResult",
    "read_constraint",
    "write_transform",
    # Elevation guard
    "check_elevation",
    # Mediator
    "AuthorizationDenied",
    "AuthzEvent",
    "CrossTenantAttempt",
    "Mediator",
    "MediatorResult",
    "Outcome",
    "authorize",
    "authorize_resource",
]
