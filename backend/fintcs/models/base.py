"""Base model utilities for the FINTCS system.

Provides a UUID primary-key mixin and a society-ownership mixin so every
tenant-scoped model carries the same ``society_id`` column.
"""
from __future__ import annotations

import datetime
import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class UUIDPrimaryKeyMixin:
    """Mixin that adds a string UUID primary key column named ``id``."""

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
    )


class SocietyOwnedMixin:
    """Mixin for rows that belong to exactly one society (tenant)."""

    society_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("societies.id"),
        nullable=False,
        index=True,
    )
