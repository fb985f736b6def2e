"""Monthly demand: the per-society installment/deduction schedule for a month."""
from __future__ import annotations

import datetime
from decimal import Decimal

from sqlalchemy import Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fintcs.database import Base
from fintcs.models.base import SocietyOwnedMixin, UUIDPrimaryKeyMixin, utcnow


class MonthlyDemand(UUIDPrimaryKeyMixin, SocietyOwnedMixin, Base):
    __tablename__ = "monthly_demands"
    __table_args__ = (
        UniqueConstraint("society_id", "year", "month", name="uq_monthly_demand_period"),
    )

    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    created_at: Mapped[datetime.datetime] = mapped_column(nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<MonthlyDemand {self.year}-{self.month:02d}>"
