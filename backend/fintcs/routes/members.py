"""Member routes."""
from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import func, select

from fintcs.authz import ResourceType
from fintcs.models.loan import Loan
from fintcs.models.member import Member
from fintcs.routes.scoped import ScopedResource, build_scoped_router


class MemberCreate(BaseModel):
    member_no: str
    name: str
    email: str | None = None
    phone: str | None = None
    status: str = "active"
    society_id: str | None = None


class MemberUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    status: str | None = None
    society_id: str | None = None


async def _unique_member_no(db, row, society_id):
    """Member numbers are unique within a society."""
    stmt = select(func.count(Member.id)).where(
        Member.society_id == society_id,
        Member.member_no == row.member_no,
        Member.id != row.id,
    )
    if (await db.execute(stmt)).scalar_one():
        raise HTTPException(status_code=409, detail="Member number already exists in this society")


async def _no_loans_left_behind(db, row, society_id):
    """A borrower cannot change society while it still has loans."""
    stmt = select(func.count(Loan.id)).where(Loan.member_id == row.id)
    if (await db.execute(stmt)).scalar_one():
        raise HTTPException(status_code=409, detail="Member has loans and cannot move to another society")


router = build_scoped_router(
    "/api/members",
    ["members"],
    ScopedResource(
        resource_type=ResourceType.MEMBER,
        model=Member,
        create_schema=MemberCreate,
        update_schema=MemberUpdate,
        fields=("member_no", "name", "email", "phone", "status"),
        audit_name="member",
        label="Member",
        order_by="member_no",
        validate=_unique_member_no,
        before_rehome=_no_loans_left_behind,
    ),
)
