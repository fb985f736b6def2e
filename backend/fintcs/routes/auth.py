"""Authentication routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fintcs.authz import Principal, ResourceType, allowed_actions
from fintcs.database import get_db
from fintcs.middleware.auth import (
    create_access_token,
    get_principal,
    verify_password,
    write_audit_log,
)
from fintcs.services.audit_service import AuditEventCategory, get_audit_writer, make_event

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _log_failed_auth(username: str, request: Request) -> None:
    """Fire-and-forget a SYSTEM audit event for a failed login attempt."""
    get_audit_writer().fire_and_forget(make_event(
        "auth.failed",
        category=AuditEventCategory.SYSTEM,
        resource_type="auth",
        details={"username": username, "reason": "invalid_credentials"},
        ip_address=request.client.host if request.client else None,
    ))


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


def _capabilities(principal: Principal) -> dict[str, list[str]]:
    """Permitted actions per resource type, for client-side menus."""
    caps = {}
    for resource_type in ResourceType:
        actions = allowed_actions(principal, resource_type)
        if actions:
            caps[resource_type.value] = [a.value for a in actions]
    return caps


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    from fintcs.models.user import User

    stmt = select(User).where(User.username == body.username, User.is_active == True)  # noqa: E712
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.password_hash):
        _log_failed_auth(body.username, request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    token = create_access_token(user.id, user.role, user.society_id, user.username)
    write_audit_log(
        None,
        "auth.login",
        resource_type="user",
        resource_id=user.id,
        details={"username": user.username},
        ip_address=request.client.host if request.client else None,
    )

    return TokenResponse(
        access_token=token,
        user={
            "id": user.id,
            "username": user.username,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "society_id": user.society_id,
        },
    )


@router.get("/me")
async def get_me(principal: Principal = Depends(get_principal)):
    return {
        "user_id": principal.user_id,
        "username": principal.username,
        "role": principal.role.value,
        "society_id": principal.tenant_id,
        "scope": "global" if principal.is_super_admin else "society",
        "capabilities": _capabilities(principal),
    }
