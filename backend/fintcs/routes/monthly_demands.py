"""Monthly demand routes."""
from decimal import Decimal
from typing import Literal

from fastapi import HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import func, select

from fintcs.authz import ResourceType
from fintcs.models.monthly_demand import MonthlyDemand
from fintcs.routes.scoped import ScopedResource, build_scoped_router

DemandStatus = Literal["draft", "posted"]


class MonthlyDemandCreate(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    status: DemandStatus = "draft"
    society_id: str | None = None


class MonthlyDemandUpdate(BaseModel):
    total_amount: Decimal | None = Field(default=None, ge=0)
    status: DemandStatus | None = None
    society_id: str | None = None


async def _one_per_period(db, row, society_id):
    """A society has at most one demand per month."""
    stmt = select(func.count(MonthlyDemand.id)).where(
        MonthlyDemand.society_id == society_id,
        MonthlyDemand.year == row.year,
        MonthlyDemand.month == row.month,
        MonthlyDemand.id != row.id,
    )
    if (await db.execute(stmt)).scalar_one():
        raise HTTPException(status_code=409, detail="Monthly demand already exists for this period")


router = build_scoped_router(
    "/api/monthly-demands",
    ["monthly-demand"],
    ScopedResource(
        resource_type=ResourceType.MONTHLY_DEMAND,
        model=MonthlyDemand,
        create_schema=MonthlyDemandCreate,
        update_schema=MonthlyDemandUpdate,
        fields=("month", "year", "total_amount", "status"),
        audit_name="monthly_demand",
        label="Monthly demand",
        order_by="year",
        validate=_one_per_period,
    ),
)
