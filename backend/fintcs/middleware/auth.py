"""Authentication and authorization glue for FINTCS routes.

Provides:
- Password hashing (bcrypt)
- JWT creation / validation and ``authenticate()`` -> ``Principal``
- ``get_principal()`` and ``get_mediator()`` dependencies
- ``enforce()``: mediator outcome -> HTTP error
- ``apply_tenant_filter()``: scope predicate -> SQLAlchemy WHERE clause
- Audit-log helper
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import false

from fintcs.authz import (
    DenyReason,
    Mediator,
    MediatorResult,
    PredicateKind,
    PredicateSpec,
    Principal,
    Role,
)
from fintcs.config import settings
from fintcs.services.audit_service import get_audit_writer, make_event

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain: str, hashed: str) -> bool:
    """Compare a plain-text password against a bcrypt hash."""
    return _pwd_context.verify(plain, hashed)


def hash_password(plain: str) -> str:
    """Return the bcrypt hash of a plain-text password."""
    return _pwd_context.hash(plain)


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


class AuthenticationError(Exception):
    """No valid principal could be built from the presented credentials."""


def create_access_token(
    user_id: str,
    role: Role | str,
    society_id: str | None,
    username: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Create a signed JWT carrying the claim set ``authenticate`` expects."""
    minutes = settings.JWT_EXPIRY_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        "sub": str(user_id),
        "role": role.value if isinstance(role, Role) else role,
        "society_id": society_id or "",
        "username": username,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def authenticate(raw_token: str) -> Principal:
    """Verify *raw_token* and turn its claims into a ``Principal``.

    Raises ``AuthenticationError`` for a bad signature, an expired token,
    a missing subject or an unknown role.
    """
    try:
        claims = jwt.decode(
            raw_token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as e:
        raise AuthenticationError("invalid token") from e

    user_id = claims.get("sub")
    role = Role.parse(claims.get("role"))
    if not user_id or role is None:
        logger.info(
            "auth.token_missing_claims has_sub=%s role=%r",
            bool(user_id),
            claims.get("role"),
        )
        raise AuthenticationError("token missing required claims")

    society_id = claims.get("society_id")
    return Principal(
        user_id=str(user_id),
        role=role,
        tenant_id=str(society_id) if society_id else None,
        username=claims.get("username"),
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


async def get_principal(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> Principal:
    """Resolve the caller from the bearer token.

    Also stores the principal on ``request.state.audit_principal`` so the
    read-access audit middleware can correlate requests to users.
    """
    try:
        principal = authenticate(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.audit_principal = principal
    return principal


_mediator: Mediator | None = None


def get_mediator() -> Mediator:
    """The process-wide mediator, reporting its events to the audit writer."""
    global _mediator
    if _mediator is None:
        _mediator = Mediator(sink=get_audit_writer().record_authz_event)
    return _mediator


# ---------------------------------------------------------------------------
# Outcome -> HTTP
# ---------------------------------------------------------------------------

_REASON_STATUS: dict[DenyReason, int] = {
    DenyReason.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    DenyReason.INSUFFICIENT_ROLE: status.HTTP_403_FORBIDDEN,
    DenyReason.SELF_ELEVATION_BLOCKED: status.HTTP_403_FORBIDDEN,
    DenyReason.CROSS_TENANT_ACCESS: status.HTTP_403_FORBIDDEN,
    DenyReason.MISSING_TENANT_CONTEXT: status.HTTP_403_FORBIDDEN,
}


def enforce(result: MediatorResult) -> MediatorResult:
    """Raise the HTTP error for a rejected result, else return it unchanged."""
    if result.allowed:
        return result
    raise HTTPException(
        status_code=_REASON_STATUS.get(result.reason, status.HTTP_403_FORBIDDEN),
        detail=result.reason.value,
    )


# ---------------------------------------------------------------------------
# Data scoping (society-level isolation)
# ---------------------------------------------------------------------------


def apply_tenant_filter(stmt, predicate: PredicateSpec, society_column):
    """AND the scope predicate into a SQLAlchemy ``select()`` statement.

    ``NoConstraint`` leaves the statement unmodified; ``MatchNothing`` adds
    ``WHERE false``.
    """
    if predicate.kind is PredicateKind.NO_CONSTRAINT:
        return stmt
    if predicate.kind is PredicateKind.TENANT_EQUALS:
        return stmt.where(society_column == predicate.tenant_id)
    return stmt.where(false())


# ---------------------------------------------------------------------------
# Audit-log helper
# ---------------------------------------------------------------------------


def write_audit_log(
    principal: Principal | None,
    action: str,
    resource_type: str | None = None,
    resource_id: str | None = None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> None:
    """Fire-and-forget an audit event to JSONL + SQLite."""
    get_audit_writer().fire_and_forget(make_event(
        action,
        principal=principal,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
    ))
