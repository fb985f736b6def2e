"""Resource mediator: the single authorization entry point for endpoints.

Every list/get/create/update/delete handler calls ``authorize`` (or
``Mediator.authorize``) before it touches storage and then applies the
result:

* ``Proceed`` for List/Read carries a ``predicate`` to AND into the query.
* ``Proceed`` for Create/Update/Delete carries the ``tenant_id`` the write
  must use, overriding anything in the request body.
* ``Reject`` carries a ``DenyReason``; the request stops there.

The lifecycle is Unchecked -> PolicyChecked -> ScopeResolved ->
(ElevationChecked) -> Final.  ``authorize`` is pure; the ``Mediator`` class
only adds delivery of the resulting audit events to a sink.
"""
from __future__ import annotations

import dataclasses
import enum
import logging
from collections.abc import Callable
from typing import Union

from fintcs.authz.elevation import check_elevation
from fintcs.authz.policy import decide
from fintcs.authz.scope import PredicateSpec, read_constraint, write_transform
from fintcs.authz.types import (
    Action,
    DenyReason,
    Principal,
    ResourceDescriptor,
    ResourceType,
    Role,
    ScopeConstraint,
    ScopeKind,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Audit events
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class AuthorizationDenied:
    principal_id: str
    action: str
    resource_type: str
    reason: DenyReason
    tenant_id: str | None = None


@dataclasses.dataclass(frozen=True)
class CrossTenantAttempt:
    """A restricted principal targeted a society other than its own.

    ``owner_tenant_id`` is the society that owns (or, for a forced write,
    will own) the row; ``attempted_tenant_id`` is the one the caller came
    from or asked for.  ``tenant_id`` is always the caller's own society.
    """

    principal_id: str
    resource_type: str
    attempted_tenant_id: str | None
    owner_tenant_id: str | None
    tenant_id: str | None = None


AuthzEvent = Union[AuthorizationDenied, CrossTenantAttempt]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class Outcome(str, enum.Enum):
    PROCEED = "Proceed"
    REJECT = "Reject"


@dataclasses.dataclass(frozen=True)
class MediatorResult:
    outcome: Outcome
    reason: DenyReason | None = None
    scope: ScopeConstraint | None = None
    predicate: PredicateSpec | None = None
    tenant_id: str | None = None
    events: tuple[AuthzEvent, ...] = ()

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.PROCEED


def _enum_value(value) -> str:
    return value.value if isinstance(value, enum.Enum) else str(value)


def _reject(
    principal: Principal,
    action,
    resource_type,
    reason: DenyReason,
    scope: ScopeConstraint | None = None,
    extra: tuple[AuthzEvent, ...] = (),
) -> MediatorResult:
    denied = AuthorizationDenied(
        principal_id=principal.user_id,
        action=_enum_value(action),
        resource_type=_enum_value(resource_type),
        reason=reason,
        tenant_id=principal.tenant_id,
    )
    return MediatorResult(
        outcome=Outcome.REJECT,
        reason=reason,
        scope=scope,
        events=extra + (denied,),
    )


def _restricted(scope: ScopeConstraint) -> bool:
    return scope.kind is ScopeKind.RESTRICTED_TO_TENANT


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def authorize(
    principal: Principal,
    action: Action,
    resource_type: ResourceType,
    existing_owner_tenant_id: str | None = None,
    proposed_tenant_id: str | None = None,
    proposed_role: Role | str | None = None,
    existing_role: Role | str | None = None,
) -> MediatorResult:
    """Authorize one resource operation.

    ``existing_owner_tenant_id`` is the society of the row being read,
    updated or deleted.  ``proposed_tenant_id`` is the society id the client
    asked for on a write.  ``proposed_role`` / ``existing_role`` only apply
    to ``ResourceType.USER`` and are run through the elevation guard.
    """
    decision = decide(principal, action, resource_type)
    if not decision.permitted:
        return _reject(principal, action, resource_type, decision.reason)

    # decide() has validated both enums by now.
    action = Action(action)
    resource_type = ResourceType(resource_type)
    scope = decision.scope

    if scope.kind is ScopeKind.DENY_ALL:
        return _reject(principal, action, resource_type, DenyReason.MISSING_TENANT_CONTEXT, scope)

    if action.is_read:
        predicate = read_constraint(principal, scope)
        if (
            action is Action.READ
            and existing_owner_tenant_id is not None
            and not predicate.matches(existing_owner_tenant_id)
        ):
            return _cross_tenant(principal, action, resource_type, scope, existing_owner_tenant_id)
        return MediatorResult(outcome=Outcome.PROCEED, scope=scope, predicate=predicate)

    if resource_type is ResourceType.USER:
        if proposed_role is not None and action in (Action.CREATE, Action.UPDATE):
            if not check_elevation(principal, proposed_role).permitted:
                return _reject(principal, action, resource_type, DenyReason.SELF_ELEVATION_BLOCKED, scope)
        if existing_role is not None and action in (Action.UPDATE, Action.DELETE):
            if not check_elevation(principal, existing_role).permitted:
                return _reject(principal, action, resource_type, DenyReason.SELF_ELEVATION_BLOCKED, scope)

    if action in (Action.UPDATE, Action.DELETE) and _restricted(scope):
        if existing_owner_tenant_id != scope.tenant_id:
            return _cross_tenant(principal, action, resource_type, scope, existing_owner_tenant_id)

    written = write_transform(principal, scope, proposed_tenant_id)
    if written.rejected:
        return _reject(principal, action, resource_type, written.reason, scope)

    events: tuple[AuthzEvent, ...] = ()
    if written.overridden:
        events = (
            CrossTenantAttempt(
                principal_id=principal.user_id,
                resource_type=resource_type.value,
                attempted_tenant_id=proposed_tenant_id,
                owner_tenant_id=written.tenant_id,
                tenant_id=principal.tenant_id,
            ),
        )
    return MediatorResult(
        outcome=Outcome.PROCEED,
        scope=scope,
        tenant_id=written.tenant_id,
        events=events,
    )


def authorize_resource(
    principal: Principal,
    action: Action,
    resource: ResourceDescriptor,
    **kwargs,
) -> MediatorResult:
    """``authorize`` for an existing instance described by *resource*."""
    return authorize(
        principal,
        action,
        resource.resource_type,
        existing_owner_tenant_id=resource.owner_tenant_id,
        **kwargs,
    )


def _cross_tenant(
    principal: Principal,
    action: Action,
    resource_type: ResourceType,
    scope: ScopeConstraint,
    owner_tenant_id: str | None,
) -> MediatorResult:
    attempt = CrossTenantAttempt(
        principal_id=principal.user_id,
        resource_type=resource_type.value,
        attempted_tenant_id=principal.tenant_id,
        owner_tenant_id=owner_tenant_id,
        tenant_id=principal.tenant_id,
    )
    return _reject(
        principal, action, resource_type, DenyReason.CROSS_TENANT_ACCESS, scope, extra=(attempt,)
    )


# ---------------------------------------------------------------------------
# Mediator with event delivery
# ---------------------------------------------------------------------------


EventSink = Callable[[AuthzEvent], None]


class Mediator:
    """``authorize`` plus fire-and-forget delivery of its audit events.

    The sink is never allowed to influence the outcome: exceptions it
    raises are logged and dropped.
    """

    def __init__(self, sink: EventSink | None = None) -> None:
        self.sink = sink

    def authorize(
        self,
        principal: Principal,
        action: Action,
        resource_type: ResourceType,
        existing_owner_tenant_id: str | None = None,
        proposed_tenant_id: str | None = None,
        proposed_role: Role | str | None = None,
        existing_role: Role | str | None = None,
    ) -> MediatorResult:
        result = authorize(
            principal,
            action,
            resource_type,
            existing_owner_tenant_id=existing_owner_tenant_id,
            proposed_tenant_id=proposed_tenant_id,
            proposed_role=proposed_role,
            existing_role=existing_role,
        )
        for event in result.events:
            self._emit(event)
        return result

    def _emit(self, event: AuthzEvent) -> None:
        if isinstance(event, CrossTenantAttempt):
            logger.warning(
                "authz.cross_tenant principal=%s resource=%s attempted=%s owner=%s",
                event.principal_id,
                event.resource_type,
                event.attempted_tenant_id,
                event.owner_tenant_id,
            )
        else:
            logger.info(
                "authz.denied principal=%s action=%s resource=%s reason=%s",
                event.principal_id,
                event.action,
                event.resource_type,
                event.reason.value,
            )
        if self.sink is None:
            return
        try:
            self.sink(event)
        except Exception:
            logger.exception("Authorization event sink failed for %r", event)
