"""Loan routes."""
import datetime
from decimal import Decimal

from fastapi import HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select

from fintcs.authz import ResourceType
from fintcs.models.loan import Loan
from fintcs.models.member import Member
from fintcs.routes.scoped import ScopedResource, build_scoped_router


class LoanCreate(BaseModel):
    member_id: str
    loan_no: str
    loan_type: str
    amount: Decimal = Field(gt=0)
    installment_amount: Decimal | None = Field(default=None, gt=0)
    loan_date: datetime.date
    status: str = "active"
    society_id: str | None = None


class LoanUpdate(BaseModel):
    loan_type: str | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    installment_amount: Decimal | None = Field(default=None, gt=0)
    status: str | None = None
    society_id: str | None = None


async def _member_in_society(db, row, society_id):
    """The borrower must belong to the loan's own society."""
    stmt = select(Member.id).where(Member.id == row.member_id, Member.society_id == society_id)
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise HTTPException(status_code=422, detail="member_id does not belong to this society")


router = build_scoped_router(
    "/api/loans",
    ["loans"],
    ScopedResource(
        resource_type=ResourceType.LOAN,
        model=Loan,
        create_schema=LoanCreate,
        update_schema=LoanUpdate,
        fields=("member_id", "loan_no", "loan_type", "amount", "installment_amount", "loan_date", "status"),
        audit_name="loan",
        label="Loan",
        order_by="loan_date",
        validate=_member_in_society,
    ),
)
