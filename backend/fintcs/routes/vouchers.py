"""Voucher routes."""
import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from fintcs.authz import ResourceType
from fintcs.models.voucher import Voucher
from fintcs.routes.scoped import ScopedResource, build_scoped_router

VoucherType = Literal["receipt", "payment", "journal", "contra"]


class VoucherCreate(BaseModel):
    voucher_no: str
    voucher_type: VoucherType
    voucher_date: datetime.date
    amount: Decimal = Field(gt=0)
    narration: str | None = None
    society_id: str | None = None


class VoucherUpdate(BaseModel):
    voucher_type: VoucherType | None = None
    voucher_date: datetime.date | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    narration: str | None = None
    society_id: str | None = None


router = build_scoped_router(
    "/api/vouchers",
    ["vouchers"],
    ScopedResource(
        resource_type=ResourceType.VOUCHER,
        model=Voucher,
        create_schema=VoucherCreate,
        update_schema=VoucherUpdate,
        fields=("voucher_no", "voucher_type", "voucher_date", "amount", "narration"),
        audit_name="voucher",
        label="Voucher",
        order_by="voucher_date",
    ),
)
