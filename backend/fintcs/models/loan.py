"""Loans issued to society members."""
from __future__ import annotations

import datetime
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from fintcs.database import Base
from fintcs.models.base import SocietyOwnedMixin, UUIDPrimaryKeyMixin, utcnow


class Loan(UUIDPrimaryKeyMixin, SocietyOwnedMixin, Base):
    __tablename__ = "loans"

    member_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("members.id"),
        nullable=False,
    )
    loan_no: Mapped[str] = mapped_column(String(30), nullable=False)
    loan_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    installment_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    loan_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    created_at: Mapped[datetime.datetime] = mapped_column(nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Loan {self.loan_no!r} {self.amount}>"
