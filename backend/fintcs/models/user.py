"""User model for FINTCS authentication and authorization."""
from __future__ import annotations

import datetime

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from fintcs.database import Base
from fintcs.models.base import UUIDPrimaryKeyMixin, utcnow


class User(UUIDPrimaryKeyMixin, Base):
    """A system user.  ``society_id`` is empty only for SuperAdmin accounts."""
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    society_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("societies.id"),
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User {self.username!r} role={self.role!r}>"
