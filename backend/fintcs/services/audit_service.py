"""Dual-write audit logging service.

Provides fire-and-forget writes to daily JSONL files and a SQLite table.
Each event is categorised for tiered retention:

* **MUTATION** -- kept forever (create, update, delete, login, etc.)
* **SECURITY** -- kept forever (authorization denials, cross-tenant attempts)
* **READ_ACCESS** -- purged after 90 days (dashboard views, sensitive GETs)
* **SYSTEM** -- purged after 30 days (scheduler runs, startup, errors)

The ``AuditWriter`` is a singleton initialised on first use.  The
``fire_and_forget`` method schedules the I/O on the default thread-pool so
the calling async endpoint returns immediately.  Audit delivery is never
required for a request to succeed.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

from fintcs.authz import AuthorizationDenied, AuthzEvent, CrossTenantAttempt, Principal
from fintcs.config import settings

logger = logging.getLogger(__name__)

SYSTEM_NAME = "fintcs"


# ---------------------------------------------------------------------------
# Event category enum (drives retention policy)
# ---------------------------------------------------------------------------


class AuditEventCategory(str, enum.Enum):
    MUTATION = "mutation"  # Never deleted
    SECURITY = "security"  # Never deleted
    READ_ACCESS = "read_access"  # 90-day retention
    SYSTEM = "system"  # 30-day retention


# ---------------------------------------------------------------------------
# Canonical audit event
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class AuditEvent:
    id: UUID
    timestamp: datetime
    category: AuditEventCategory
    user_id: str | None
    username: str | None
    society_id: str | None
    action: str
    resource_type: str | None
    resource_id: str | None
    details: dict | None
    ip_address: str | None
    system_name: str = SYSTEM_NAME

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "user_id": self.user_id,
            "username": self.username,
            "society_id": self.society_id,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "details": self.details,
            "ip_address": self.ip_address,
            "system_name": self.system_name,
        }

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), default=str, sort_keys=True)


def make_event(
    action: str,
    *,
    category: AuditEventCategory | None = None,
    principal: Principal | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
) -> AuditEvent:
    """Build an ``AuditEvent`` stamped now, classifying *action* if needed."""
    return AuditEvent(
        id=uuid4(),
        timestamp=datetime.now(timezone.utc),
        category=category or classify_action(action),
        user_id=principal.user_id if principal else None,
        username=principal.username if principal else None,
        society_id=principal.tenant_id if principal else None,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
    )


# ---------------------------------------------------------------------------
# Action → category classifier
# ---------------------------------------------------------------------------

_MUTATION_KEYWORDS = {
    "create",
    "update",
    "delete",
    "deactivate",
    "login",
}

_SYSTEM_PREFIXES = (
    "system.",
    "scheduler.",
    "auth.failed",
)

_SECURITY_PREFIXES = (
    "authz.",
)


def classify_action(action: str) -> AuditEventCategory:
    """Map an action string to a retention category."""
    action_lower = action.lower()

    for prefix in _SECURITY_PREFIXES:
        if action_lower.startswith(prefix):
            return AuditEventCategory.SECURITY

    for prefix in _SYSTEM_PREFIXES:
        if action_lower.startswith(prefix):
            return AuditEventCategory.SYSTEM

    # Mutations: any segment that is a mutation keyword
    parts = action_lower.replace(".", "_").split("_")
    for part in parts:
        if part in _MUTATION_KEYWORDS:
            return AuditEventCategory.MUTATION

    read_keywords = ("view", "read", "list", "stats")
    if any(kw in action_lower for kw in read_keywords):
        return AuditEventCategory.READ_ACCESS

    # Unknown actions are treated as mutations so they are never purged.
    return AuditEventCategory.MUTATION


def authz_event_to_audit(event: AuthzEvent) -> AuditEvent:
    """Translate a mediator event into a SECURITY audit record."""
    if isinstance(event, CrossTenantAttempt):
        action = "authz.cross_tenant_attempt"
        details = {
            "attempted_tenant_id": event.attempted_tenant_id,
            "owner_tenant_id": event.owner_tenant_id,
        }
    else:
        action = "authz.denied"
        details = {"action": event.action, "reason": event.reason.value}
    return AuditEvent(
        id=uuid4(),
        timestamp=datetime.now(timezone.utc),
        category=AuditEventCategory.SECURITY,
        user_id=event.principal_id,
        username=None,
        society_id=event.tenant_id,
        action=action,
        resource_type=event.resource_type,
        resource_id=None,
        details=details,
        ip_address=None,
    )


# ---------------------------------------------------------------------------
# Audit writer
# ---------------------------------------------------------------------------


class AuditWriter:
    """Manages writes to JSONL files and SQLite."""

    def __init__(self, base_path: str, system_name: str = SYSTEM_NAME) -> None:
        self.base_path = Path(base_path)
        self.jsonl_dir = self.base_path / "jsonl"
        self.sqlite_path = self.base_path / "audit.db"
        self.system_name = system_name

        self.jsonl_dir.mkdir(parents=True, exist_ok=True)
        self._init_sqlite()

    # ---- SQLite setup ----

    def _init_sqlite(self) -> None:
        conn = sqlite3.connect(str(self.sqlite_path))
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS audit_events (
                    id          TEXT PRIMARY KEY,
                    timestamp   TEXT NOT NULL,
                    category    TEXT NOT NULL,
                    user_id     TEXT,
                    username    TEXT,
                    society_id  TEXT,
                    action      TEXT NOT NULL,
                    resource_type TEXT,
                    resource_id TEXT,
                    details     TEXT,
                    ip_address  TEXT,
                    system_name TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_ae_cat_ts "
                "ON audit_events(category, timestamp)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_ae_society "
                "ON audit_events(society_id)"
            )
            conn.commit()
        finally:
            conn.close()

    def _get_jsonl_path(self, dt: datetime) -> Path:
        return self.jsonl_dir / f"{dt.strftime('%Y-%m-%d')}.jsonl"

    # ---- Sync write (runs in thread) ----

    def write_sync(self, event: AuditEvent) -> None:
        """Append to daily JSONL file and insert into SQLite."""
        with open(self._get_jsonl_path(event.timestamp), "a", encoding="utf-8") as f:
            f.write(event.to_json_line() + "\n")

        conn = sqlite3.connect(str(self.sqlite_path))
        try:
            conn.execute(
                """INSERT OR IGNORE INTO audit_events
                   (id, timestamp, category, user_id, username, society_id, action,
                    resource_type, resource_id, details, ip_address, system_name)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    str(event.id),
                    event.timestamp.isoformat(),
                    event.category.value,
                    event.user_id,
                    event.username,
                    event.society_id,
                    event.action,
                    event.resource_type,
                    event.resource_id,
                    json.dumps(event.details, default=str) if event.details else None,
                    event.ip_address,
                    event.system_name,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    # ---- Async / fire-and-forget ----

    async def write_async(self, event: AuditEvent) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.write_sync, event)

    def fire_and_forget(self, event: AuditEvent) -> None:
        """Schedule the write without awaiting.  Failures are logged only."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop -- write inline (e.g. during shutdown)
            try:
                self.write_sync(event)
            except Exception:
                logger.exception("Audit write failed (sync fallback)")
            return
        loop.create_task(self._safe_write(event))

    async def _safe_write(self, event: AuditEvent) -> None:
        try:
            await self.write_async(event)
        except Exception:
            logger.exception("Audit write failed for event %s", event.id)

    def record_authz_event(self, event: AuthzEvent) -> None:
        """Sink for ``fintcs.authz.Mediator``."""
        self.fire_and_forget(authz_event_to_audit(event))


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_audit_writer: AuditWriter | None = None


def get_audit_writer() -> AuditWriter:
    global _audit_writer
    if _audit_writer is None:
        _audit_writer = AuditWriter(base_path=settings.AUDIT_STORAGE_PATH)
    return _audit_writer
