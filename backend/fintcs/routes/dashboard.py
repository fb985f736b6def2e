"""Dashboard routes: society KPIs."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fintcs.authz import Action, Mediator, Principal, ResourceType
from fintcs.database import get_db
from fintcs.middleware.auth import apply_tenant_filter, enforce, get_mediator, get_principal

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def get_stats(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    mediator: Mediator = Depends(get_mediator),
):
    """Counts and totals over the caller's society (all societies for SuperAdmin)."""
    from fintcs.models.loan import Loan
    from fintcs.models.member import Member
    from fintcs.models.voucher import Voucher

    result = enforce(mediator.authorize(principal, Action.READ, ResourceType.DASHBOARD))
    predicate = result.predicate

    async def scalar(stmt, column):
        return (await db.execute(apply_tenant_filter(stmt, predicate, column))).scalar_one()

    total_members = await scalar(select(func.count(Member.id)), Member.society_id)
    active_members = await scalar(
        select(func.count(Member.id)).where(Member.status == "active"), Member.society_id
    )
    active_loans = await scalar(
        select(func.count(Loan.id)).where(Loan.status == "active"), Loan.society_id
    )
    loan_amount = await scalar(
        select(func.coalesce(func.sum(Loan.amount), 0)).where(Loan.status == "active"), Loan.society_id
    )
    voucher_count = await scalar(select(func.count(Voucher.id)), Voucher.society_id)
    voucher_amount = await scalar(
        select(func.coalesce(func.sum(Voucher.amount), 0)), Voucher.society_id
    )

    return {
        "society_id": predicate.tenant_id,
        "total_members": total_members,
        "active_members": active_members,
        "active_loans": active_loans,
        "total_loan_amount": float(loan_amount),
        "total_vouchers": voucher_count,
        "total_voucher_amount": float(voucher_amount),
    }
