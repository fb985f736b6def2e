"""Accounting vouchers (receipts, payments, journal)."""
from __future__ import annotations

import datetime
from decimal import Decimal

from sqlalchemy import Date, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fintcs.database import Base
from fintcs.models.base import SocietyOwnedMixin, UUIDPrimaryKeyMixin, utcnow


class Voucher(UUIDPrimaryKeyMixin, SocietyOwnedMixin, Base):
    __tablename__ = "vouchers"

    voucher_no: Mapped[str] = mapped_column(String(30), nullable=False)
    voucher_type: Mapped[str] = mapped_column(String(30), nullable=False)
    voucher_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    narration: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Voucher {self.voucher_no!r} {self.voucher_type!r}>"
