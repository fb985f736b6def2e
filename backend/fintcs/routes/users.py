"""User management routes.

Role assignment goes through the elevation guard, both for the role being
granted and for the role the target account already holds.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fintcs.authz import Action, Mediator, Principal, ResourceType, Role
from fintcs.database import get_db
from fintcs.middleware.auth import (
    apply_tenant_filter,
    enforce,
    get_mediator,
    get_principal,
    hash_password,
    write_audit_log,
)

router = APIRouter(prefix="/api/users", tags=["users"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    username: str
    password: str
    name: str
    email: str | None = None
    role: str
    society_id: str | None = None


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None
    society_id: str | None = None
    password: str | None = None
    is_active: bool | None = None


def _serialize(u) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "society_id": u.society_id,
        "is_active": u.is_active,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


def _parse_role(value: str) -> Role:
    role = Role.parse(value)
    if role is None:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid role '{value}'. Valid roles: {', '.join(r.value for r in Role)}",
        )
    return role


async def _check_society(db: AsyncSession, society_id: str | None) -> None:
    from fintcs.models.society import Society

    if society_id is not None and await db.get(Society, society_id) is None:
        raise HTTPException(status_code=422, detail="Unknown society_id")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("")
async def list_users(
    society_id: str | None = Query(None),
    role: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.user import User

    result = enforce(mediator.authorize(principal, Action.LIST, ResourceType.USER))

    stmt = apply_tenant_filter(select(User), result.predicate, User.society_id)
    if society_id:
        stmt = stmt.where(User.society_id == society_id)
    if role:
        stmt = stmt.where(User.role == _parse_role(role).value)
    rows = await db.execute(stmt.order_by(User.username))
    items = [_serialize(u) for u in rows.scalars().all()]
    return {"items": items, "total": len(items)}


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.user import User

    result = enforce(mediator.authorize(principal, Action.READ, ResourceType.USER))

    stmt = apply_tenant_filter(select(User).where(User.id == user_id), result.predicate, User.society_id)
    u = (await db.execute(stmt)).scalar_one_or_none()
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return _serialize(u)


@router.post("", status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.user import User

    # Policy answers before payload validation.
    enforce(mediator.authorize(principal, Action.CREATE, ResourceType.USER))
    role = _parse_role(body.role)
    result = enforce(mediator.authorize(
        principal,
        Action.CREATE,
        ResourceType.USER,
        proposed_tenant_id=body.society_id,
        proposed_role=role,
    ))
    society_id = result.tenant_id
    if role is not Role.SUPER_ADMIN and society_id is None:
        raise HTTPException(status_code=422, detail="society_id is required for this role")
    await _check_society(db, society_id)

    existing = await db.execute(select(func.count(User.id)).where(User.username == body.username))
    if existing.scalar_one():
        raise HTTPException(status_code=409, detail="Username already exists")

    new_user = User(
        username=body.username,
        password_hash=hash_password(body.password),
        name=body.name,
        email=body.email,
        role=role.value,
        society_id=None if role is Role.SUPER_ADMIN else society_id,
    )
    db.add(new_user)
    await db.commit()

    write_audit_log(
        principal,
        "user.create",
        resource_type="user",
        resource_id=new_user.id,
        details={"username": body.username, "role": role.value, "society_id": new_user.society_id},
    )
    return _serialize(new_user)


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.user import User

    # Rows outside the caller's scope are simply not found.
    visible = enforce(mediator.authorize(principal, Action.READ, ResourceType.USER))
    stmt = apply_tenant_filter(select(User).where(User.id == user_id), visible.predicate, User.society_id)
    u = (await db.execute(stmt.with_for_update())).scalar_one_or_none()
    if not u:
        raise HTTPException(status_code=404, detail="User not found")

    new_role = _parse_role(body.role) if body.role is not None else None
    result = enforce(mediator.authorize(
        principal,
        Action.UPDATE,
        ResourceType.USER,
        existing_owner_tenant_id=u.society_id,
        proposed_tenant_id=body.society_id,
        proposed_role=new_role,
        existing_role=u.role,
    ))

    changes = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"password", "role", "society_id"})
    for field, val in changes.items():
        setattr(u, field, val)
    if new_role is not None:
        u.role = new_role.value
        changes["role"] = new_role.value
    if body.password:
        u.password_hash = hash_password(body.password)
        changes["password"] = "changed"
    if result.tenant_id is not None and result.tenant_id != u.society_id:
        await _check_society(db, result.tenant_id)
        u.society_id = result.tenant_id
        changes["society_id"] = result.tenant_id
    if u.role == Role.SUPER_ADMIN.value:
        u.society_id = None
    elif u.society_id is None:
        raise HTTPException(status_code=422, detail="society_id is required for this role")

    await db.commit()
    write_audit_log(principal, "user.update", "user", user_id, changes)
    return _serialize(u)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.user import User

    # Role gate first so non-SuperAdmins learn nothing about the id.
    enforce(mediator.authorize(principal, Action.DELETE, ResourceType.USER))

    u = await db.get(User, user_id, with_for_update=True)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    if u.id == principal.user_id:
        raise HTTPException(status_code=409, detail="Cannot delete your own account")

    enforce(mediator.authorize(
        principal,
        Action.DELETE,
        ResourceType.USER,
        existing_owner_tenant_id=u.society_id,
        existing_role=u.role,
    ))
    await db.delete(u)
    await db.commit()
    write_audit_log(principal, "user.delete", "user", user_id, {"username": u.username})
