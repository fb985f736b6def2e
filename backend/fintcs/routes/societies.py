"""Society routes -- the tenant directory."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fintcs.authz import Action, Mediator, Principal, ResourceType
from fintcs.database import get_db
from fintcs.middleware.auth import enforce, get_mediator, get_principal, write_audit_log

router = APIRouter(prefix="/api/societies", tags=["societies"])


class SocietyCreate(BaseModel):
    code: str
    name: str
    city: str | None = None
    registration_number: str | None = None
    address: str | None = None


class SocietyUpdate(BaseModel):
    name: str | None = None
    city: str | None = None
    registration_number: str | None = None
    address: str | None = None
    is_active: bool | None = None


def _serialize(s) -> dict:
    return {
        "id": s.id,
        "code": s.code,
        "name": s.name,
        "city": s.city,
        "registration_number": s.registration_number,
        "address": s.address,
        "is_active": s.is_active,
    }


@router.get("")
async def list_societies(
    city: str | None = Query(None),
    is_active: bool | None = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.society import Society

    enforce(mediator.authorize(principal, Action.LIST, ResourceType.SOCIETY))

    stmt = select(Society).order_by(Society.code)
    if city:
        stmt = stmt.where(Society.city == city)
    if is_active is not None:
        stmt = stmt.where(Society.is_active == is_active)
    result = await db.execute(stmt)
    items = [_serialize(s) for s in result.scalars().all()]
    return {"items": items, "total": len(items)}


@router.get("/{society_id}")
async def get_society(
    society_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.society import Society

    enforce(mediator.authorize(principal, Action.READ, ResourceType.SOCIETY))

    s = await db.get(Society, society_id)
    if not s:
        raise HTTPException(status_code=404, detail="Society not found")
    return _serialize(s)


@router.post("", status_code=201)
async def create_society(
    body: SocietyCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.society import Society

    enforce(mediator.authorize(principal, Action.CREATE, ResourceType.SOCIETY))

    existing = await db.execute(select(func.count(Society.id)).where(Society.code == body.code))
    if existing.scalar_one():
        raise HTTPException(status_code=409, detail="Society code already exists")

    s = Society(**body.model_dump())
    db.add(s)
    await db.commit()
    write_audit_log(principal, "society.create", "society", s.id, {"code": body.code})
    return _serialize(s)


@router.put("/{society_id}")
async def update_society(
    society_id: str,
    body: SocietyUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    from fintcs.models.society import Society

    enforce(mediator.authorize(principal, Action.UPDATE, ResourceType.SOCIETY))

    s = await db.get(Society, society_id, with_for_update=True)
    if not s:
        raise HTTPException(status_code=404, detail="Society not found")

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    for field, val in changes.items():
        setattr(s, field, val)
    await db.commit()
    write_audit_log(principal, "society.update", "society", society_id, changes)
    return _serialize(s)


@router.delete("/{society_id}", status_code=204)
async def delete_society(
    society_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    """Deactivate a society.

    The row is kept so members, loans, vouchers and demands still have a
    valid owner.  Its user accounts are deactivated with it and can no
    longer log in.
    """
    from fintcs.models.society import Society
    from fintcs.models.user import User

    enforce(mediator.authorize(principal, Action.DELETE, ResourceType.SOCIETY))

    s = await db.get(Society, society_id, with_for_update=True)
    if not s:
        raise HTTPException(status_code=404, detail="Society not found")
    s.is_active = False
    result = await db.execute(
        update(User).where(User.society_id == society_id, User.is_active == True).values(is_active=False)  # noqa: E712
    )
    await db.commit()
    write_audit_log(
        principal,
        "society.deactivate",
        "society",
        society_id,
        {"code": s.code, "users_deactivated": result.rowcount},
    )
