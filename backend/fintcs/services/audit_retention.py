"""Category-based retention for the audit stores.

MUTATION and SECURITY events are kept forever.  READ_ACCESS events expire
after 90 days and SYSTEM events after 30.  Both stores written by
``AuditWriter`` are purged: rows in ``audit.db`` by event timestamp, lines in
the daily JSONL files by the file's date.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fintcs.services.audit_service import AuditEventCategory

logger = logging.getLogger(__name__)

# None = never purge.
RETENTION_DAYS: dict[AuditEventCategory, int | None] = {
    AuditEventCategory.MUTATION: None,
    AuditEventCategory.SECURITY: None,
    AuditEventCategory.READ_ACCESS: 90,
    AuditEventCategory.SYSTEM: 30,
}

_EXPIRING = {cat: days for cat, days in RETENTION_DAYS.items() if days is not None}


@dataclasses.dataclass
class PurgeSummary:
    sqlite_deleted: int = 0
    jsonl_lines_removed: int = 0
    jsonl_files_removed: int = 0

    def as_dict(self) -> dict[str, int]:
        return dataclasses.asdict(self)


def is_expired(category: str, age_days: int) -> bool:
    """True if an event of *category* that is *age_days* old may be dropped.

    Unknown categories never expire.
    """
    try:
        days = RETENTION_DAYS[AuditEventCategory(category)]
    except ValueError:
        return False
    return days is not None and age_days >= days


def _purge_sqlite(db_path: Path, now: datetime) -> int:
    conn = sqlite3.connect(str(db_path))
    deleted = 0
    try:
        with conn:
            for category, days in _EXPIRING.items():
                cursor = conn.execute(
                    "DELETE FROM audit_events WHERE category = ? AND timestamp < ?",
                    (category.value, (now - timedelta(days=days)).isoformat()),
                )
                deleted += cursor.rowcount
    finally:
        conn.close()
    return deleted


def _file_age_days(jsonl_file: Path, now: datetime) -> int | None:
    try:
        day = datetime.strptime(jsonl_file.stem, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        return None
    return (now - day).days


def _keep_line(line: str, age_days: int) -> bool:
    try:
        category = json.loads(line).get("category", AuditEventCategory.MUTATION.value)
    except (json.JSONDecodeError, AttributeError):
        return True
    return not is_expired(category, age_days)


def _purge_jsonl(jsonl_dir: Path, now: datetime, summary: PurgeSummary) -> None:
    min_days = min(_EXPIRING.values())
    for jsonl_file in sorted(jsonl_dir.glob("*.jsonl")):
        age_days = _file_age_days(jsonl_file, now)
        if age_days is None or age_days < min_days:
            continue

        lines = [ln for ln in jsonl_file.read_text(encoding="utf-8").splitlines() if ln.strip()]
        kept = [ln for ln in lines if _keep_line(ln, age_days)]
        removed = len(lines) - len(kept)
        if not removed:
            continue

        summary.jsonl_lines_removed += removed
        if not kept:
            jsonl_file.unlink()
            summary.jsonl_files_removed += 1
            continue
        tmp = jsonl_file.with_suffix(".tmp")
        tmp.write_text("\n".join(kept) + "\n", encoding="utf-8")
        tmp.replace(jsonl_file)


def purge_audit_retention(
    audit_base_path: str,
    now: datetime | None = None,
) -> dict[str, int]:
    """Drop expired events from ``audit.db`` and the JSONL files.

    Returns counts of SQLite rows deleted, JSONL lines removed and JSONL
    files removed outright.
    """
    base = Path(audit_base_path)
    now = now or datetime.now(timezone.utc)
    summary = PurgeSummary()

    db_path = base / "audit.db"
    if db_path.exists():
        summary.sqlite_deleted = _purge_sqlite(db_path, now)

    jsonl_dir = base / "jsonl"
    if jsonl_dir.is_dir():
        _purge_jsonl(jsonl_dir, now, summary)

    logger.info(
        "audit.retention sqlite_deleted=%d jsonl_lines_removed=%d jsonl_files_removed=%d",
        summary.sqlite_deleted,
        summary.jsonl_lines_removed,
        summary.jsonl_files_removed,
    )
    return summary.as_dict()
