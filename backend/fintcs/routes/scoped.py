"""Uniform CRUD routes for society-owned resources.

Members, loans, vouchers and monthly demands all follow the same lifecycle,
so their routers are built here from one description.  Every handler goes
through the mediator before touching storage:

* reads AND the scope predicate into the query, so rows of other societies
  are never loaded (a foreign id is simply "not found");
* writes take the society id from the mediator, never from the body.
"""
# No ``from __future__ import annotations`` here: FastAPI must see the real
# body classes on the handlers built inside ``build_scoped_router``.

import dataclasses
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fintcs.authz import Action, Mediator, Principal, ResourceType
from fintcs.database import get_db
from fintcs.middleware.auth import (
    apply_tenant_filter,
    enforce,
    get_mediator,
    get_principal,
    write_audit_log,
)

# (db, row, society_id) -> raises HTTPException if the row is inconsistent
Validator = Callable[[AsyncSession, Any, str], Awaitable[None]]


@dataclasses.dataclass(frozen=True)
class ScopedResource:
    resource_type: ResourceType
    model: type
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    fields: tuple[str, ...]
    audit_name: str
    label: str
    order_by: str = "created_at"
    validate: Validator | None = None
    # Called before a row moves to another society; raises if other rows depend on it.
    before_rehome: Validator | None = None


def serialize(row, fields: tuple[str, ...]) -> dict:
    item = {"id": row.id, "society_id": row.society_id}
    for name in fields:
        item[name] = getattr(row, name)
    return item


async def ensure_society_exists(db: AsyncSession, society_id: str) -> None:
    from fintcs.models.society import Society

    if await db.get(Society, society_id) is None:
        raise HTTPException(status_code=422, detail="Unknown society_id")


def build_scoped_router(prefix: str, tags: list[str], resource: ScopedResource) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=tags)
    model = resource.model
    CreateSchema = resource.create_schema
    UpdateSchema = resource.update_schema
    not_found = f"{resource.label} not found"

    async def _load_visible(
        db: AsyncSession, principal: Principal, mediator: Mediator, item_id: str, lock: bool = False
    ):
        visible = enforce(mediator.authorize(principal, Action.READ, resource.resource_type))
        stmt = apply_tenant_filter(select(model).where(model.id == item_id), visible.predicate, model.society_id)
        if lock:
            stmt = stmt.with_for_update()
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise HTTPException(status_code=404, detail=not_found)
        return row

    @router.get("")
    async def list_items(
        society_id: str | None = Query(None),
        page: int = Query(1, ge=1),
        page_size: int = Query(50, ge=1, le=500),
        db: AsyncSession = Depends(get_db),
        principal: Principal = Depends(get_principal),
        mediator: Mediator = Depends(get_mediator),
    ):
        result = enforce(mediator.authorize(principal, Action.LIST, resource.resource_type))

        count_stmt = apply_tenant_filter(select(func.count(model.id)), result.predicate, model.society_id)
        data_stmt = apply_tenant_filter(select(model), result.predicate, model.society_id)
        # A client-side filter narrows the scope, it never replaces it.
        if society_id:
            count_stmt = count_stmt.where(model.society_id == society_id)
            data_stmt = data_stmt.where(model.society_id == society_id)

        total = (await db.execute(count_stmt)).scalar_one()
        data_stmt = (
            data_stmt.order_by(getattr(model, resource.order_by))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        rows = (await db.execute(data_stmt)).scalars().all()
        return {
            "items": [serialize(r, resource.fields) for r in rows],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    @router.get("/{item_id}")
    async def get_item(
        item_id: str,
        db: AsyncSession = Depends(get_db),
        principal: Principal = Depends(get_principal),
        mediator: Mediator = Depends(get_mediator),
    ):
        row = await _load_visible(db, principal, mediator, item_id)
        return serialize(row, resource.fields)

    @router.post("", status_code=201)
    async def create_item(
        body: CreateSchema,
        db: AsyncSession = Depends(get_db),
        principal: Principal = Depends(get_principal),
        mediator: Mediator = Depends(get_mediator),
    ):
        values = body.model_dump(exclude={"society_id"})
        result = enforce(mediator.authorize(
            principal,
            Action.CREATE,
            resource.resource_type,
            proposed_tenant_id=body.society_id,
        ))
        if result.tenant_id is None:
            raise HTTPException(status_code=422, detail="society_id is required")
        await ensure_society_exists(db, result.tenant_id)

        row = model(society_id=result.tenant_id, **values)
        if resource.validate is not None:
            await resource.validate(db, row, result.tenant_id)
        db.add(row)
        await db.commit()

        write_audit_log(
            principal,
            f"{resource.audit_name}.create",
            resource_type=resource.audit_name,
            resource_id=row.id,
            details={"society_id": result.tenant_id},
        )
        return serialize(row, resource.fields)

    @router.put("/{item_id}")
    async def update_item(
        item_id: str,
        body: UpdateSchema,
        db: AsyncSession = Depends(get_db),
        principal: Principal = Depends(get_principal),
        mediator: Mediator = Depends(get_mediator),
    ):
        row = await _load_visible(db, principal, mediator, item_id, lock=True)
        proposed = getattr(body, "society_id", None)
        result = enforce(mediator.authorize(
            principal,
            Action.UPDATE,
            resource.resource_type,
            existing_owner_tenant_id=row.society_id,
            proposed_tenant_id=proposed,
        ))

        changes = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"society_id"})
        for field, val in changes.items():
            setattr(row, field, val)
        if result.tenant_id is not None and result.tenant_id != row.society_id:
            await ensure_society_exists(db, result.tenant_id)
            if resource.before_rehome is not None:
                await resource.before_rehome(db, row, result.tenant_id)
            row.society_id = result.tenant_id
            changes["society_id"] = result.tenant_id
        if resource.validate is not None:
            await resource.validate(db, row, row.society_id)
        await db.commit()

        write_audit_log(principal, f"{resource.audit_name}.update", resource.audit_name, item_id, changes)
        return serialize(row, resource.fields)

    @router.delete("/{item_id}", status_code=204)
    async def delete_item(
        item_id: str,
        db: AsyncSession = Depends(get_db),
        principal: Principal = Depends(get_principal),
        mediator: Mediator = Depends(get_mediator),
    ):
        row = await _load_visible(db, principal, mediator, item_id, lock=True)
        enforce(mediator.authorize(
            principal,
            Action.DELETE,
            resource.resource_type,
            existing_owner_tenant_id=row.society_id,
        ))
        await db.delete(row)
        await db.commit()
        write_audit_log(principal, f"{resource.audit_name}.delete", resource.audit_name, item_id)

    return router
