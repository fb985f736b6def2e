"""Society model: the tenant boundary."""
from __future__ import annotations

import datetime

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fintcs.database import Base
from fintcs.models.base import UUIDPrimaryKeyMixin, utcnow


class Society(UUIDPrimaryKeyMixin, Base):
    """A cooperative society.  Every other row belongs to one."""
    __tablename__ = "societies"

    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100))
    registration_number: Mapped[str | None] = mapped_column(String(50))
    address: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Society {self.code!r} {self.name!r}>"
