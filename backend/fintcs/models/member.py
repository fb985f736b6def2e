"""Society member model."""
from __future__ import annotations

import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from fintcs.database import Base
from fintcs.models.base import SocietyOwnedMixin, UUIDPrimaryKeyMixin, utcnow


class Member(UUIDPrimaryKeyMixin, SocietyOwnedMixin, Base):
    __tablename__ = "members"

    member_no: Mapped[str] = mapped_column(String(30), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200))
    phone: Mapped[str | None] = mapped_column(String(30))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    created_at: Mapped[datetime.datetime] = mapped_column(nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Member {self.member_no!r} {self.name!r}>"
