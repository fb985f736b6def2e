"""
Tests 1-17: Audit Logging

Action classification, mediator event translation, the JSONL + SQLite
writer and category-based retention.
"""
import asyncio
import dataclasses
import json
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from fintcs.authz import Action, AuthorizationDenied, CrossTenantAttempt, DenyReason, ResourceType, Role, authorize
from fintcs.services.audit_retention import RETENTION_DAYS, is_expired, purge_audit_retention
from fintcs.services.audit_service import (
    AuditEventCategory,
    AuditWriter,
    authz_event_to_audit,
    classify_action,
    get_audit_writer,
    make_event,
)

from conftest import BASE_URL, auth_headers, make_principal


def _sqlite_rows(writer: AuditWriter) -> list[tuple]:
    conn = sqlite3.connect(str(writer.sqlite_path))
    try:
        return conn.execute("SELECT action, category, society_id FROM audit_events ORDER BY timestamp").fetchall()
    finally:
        conn.close()


async def _drain_background_writes() -> None:
    pending = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    if pending:
        await asyncio.wait(pending, timeout=5)


class TestClassification:

    @pytest.mark.parametrize("action, expected", [
        ("member.create", AuditEventCategory.MUTATION),
        ("loan.update", AuditEventCategory.MUTATION),
        ("user.delete", AuditEventCategory.MUTATION),
        ("auth.login", AuditEventCategory.MUTATION),
        ("authz.denied", AuditEventCategory.SECURITY),
        ("authz.cross_tenant_attempt", AuditEventCategory.SECURITY),
        ("system.startup", AuditEventCategory.SYSTEM),
        ("auth.failed", AuditEventCategory.SYSTEM),
        ("read.api.dashboard.stats", AuditEventCategory.READ_ACCESS),
        ("something.unheard.of", AuditEventCategory.MUTATION),
    ])
    def test_01_classify_action(self, action, expected):
        assert classify_action(action) is expected

    def test_02_make_event_carries_principal(self):
        p = make_principal(Role.SOCIETY_ADMIN, "S1", user_id="admin-s1")
        event = make_event("member.create", principal=p, resource_type="member", resource_id="m-1")
        assert event.category is AuditEventCategory.MUTATION
        assert event.user_id == "admin-s1"
        assert event.society_id == "S1"
        assert event.system_name == "fintcs"

    def test_03_explicit_category_wins(self):
        event = make_event("member.create", category=AuditEventCategory.SYSTEM)
        assert event.category is AuditEventCategory.SYSTEM
        assert event.user_id is None


class TestAuthzEvents:

    def test_04_denied_event(self):
        audit = authz_event_to_audit(AuthorizationDenied(
            principal_id="u-1", action="Create", resource_type="Member", reason=DenyReason.INSUFFICIENT_ROLE,
        ))
        assert audit.action == "authz.denied"
        assert audit.category is AuditEventCategory.SECURITY
        assert audit.details == {"action": "Create", "reason": "InsufficientRole"}

    def test_05_cross_tenant_event(self):
        audit = authz_event_to_audit(CrossTenantAttempt(
            principal_id="u-1", resource_type="Loan", attempted_tenant_id="S1", owner_tenant_id="S2",
        ))
        assert audit.action == "authz.cross_tenant_attempt"
        assert audit.category is AuditEventCategory.SECURITY
        assert audit.resource_type == "Loan"
        assert audit.details["owner_tenant_id"] == "S2"


class TestAuditWriter:

    def test_06_write_sync_dual_writes(self, tmp_path):
        """One event lands in the daily JSONL file and in SQLite."""
        writer = AuditWriter(str(tmp_path))
        event = make_event("voucher.create", principal=make_principal(Role.SOCIETY_ADMIN, "S1"))
        writer.write_sync(event)

        jsonl = tmp_path / "jsonl" / f"{event.timestamp.strftime('%Y-%m-%d')}.jsonl"
        record = json.loads(jsonl.read_text().strip())
        assert record["action"] == "voucher.create"
        assert record["society_id"] == "S1"
        assert _sqlite_rows(writer) == [("voucher.create", "mutation", "S1")]

    def test_07_duplicate_id_ignored_in_sqlite(self, tmp_path):
        writer = AuditWriter(str(tmp_path))
        event = make_event("member.update")
        writer.write_sync(event)
        writer.write_sync(event)
        assert len(_sqlite_rows(writer)) == 1

    def test_08_fire_and_forget_without_loop_writes_inline(self, tmp_path):
        writer = AuditWriter(str(tmp_path))
        writer.fire_and_forget(make_event("system.shutdown"))
        assert _sqlite_rows(writer) == [("system.shutdown", "system", None)]

    async def test_09_fire_and_forget_in_loop(self, tmp_path):
        """Inside a running loop the write is scheduled, not awaited."""
        writer = AuditWriter(str(tmp_path))
        writer.fire_and_forget(make_event("loan.delete"))
        await _drain_background_writes()
        assert _sqlite_rows(writer) == [("loan.delete", "mutation", None)]

    def test_10_record_authz_event(self, tmp_path):
        writer = AuditWriter(str(tmp_path))
        writer.record_authz_event(AuthorizationDenied(
            principal_id="u-1", action="Delete", resource_type="User", reason=DenyReason.INSUFFICIENT_ROLE,
        ))
        assert _sqlite_rows(writer) == [("authz.denied", "security", None)]


class TestRetention:

    def test_11_retention_windows(self):
        assert RETENTION_DAYS[AuditEventCategory.MUTATION] is None
        assert RETENTION_DAYS[AuditEventCategory.SECURITY] is None
        assert RETENTION_DAYS[AuditEventCategory.READ_ACCESS] == 90
        assert RETENTION_DAYS[AuditEventCategory.SYSTEM] == 30

    def test_12_purge_keeps_mutation_and_security(self, tmp_path):
        """Old SYSTEM and READ_ACCESS events go; MUTATION and SECURITY stay."""
        writer = AuditWriter(str(tmp_path))
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        old = now - timedelta(days=120)

        def at(action, category):
            return dataclasses.replace(make_event(action, category=category), timestamp=old)

        for action, category in [
            ("member.create", AuditEventCategory.MUTATION),
            ("authz.denied", AuditEventCategory.SECURITY),
            ("system.startup", AuditEventCategory.SYSTEM),
            ("read.api.members", AuditEventCategory.READ_ACCESS),
        ]:
            writer.write_sync(at(action, category))
        # Recent SYSTEM event survives.
        writer.write_sync(dataclasses.replace(make_event("system.shutdown"), timestamp=now - timedelta(days=1)))

        summary = purge_audit_retention(str(tmp_path), now=now)

        assert summary == {"sqlite_deleted": 2, "jsonl_lines_removed": 2, "jsonl_files_removed": 0}
        remaining = sorted(row[0] for row in _sqlite_rows(writer))
        assert remaining == ["authz.denied", "member.create", "system.shutdown"]
        old_file = tmp_path / "jsonl" / f"{old.strftime('%Y-%m-%d')}.jsonl"
        kept = [json.loads(line)["action"] for line in old_file.read_text().splitlines()]
        assert sorted(kept) == ["authz.denied", "member.create"]


class TestReadAccessMiddleware:

    @staticmethod
    def _reads_by(user_id: str) -> list[tuple]:
        conn = sqlite3.connect(str(get_audit_writer().sqlite_path))
        try:
            return conn.execute(
                "SELECT action, resource_id, society_id FROM audit_events "
                "WHERE user_id = ? AND category = 'read_access'",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()

    async def test_13_sensitive_get_recorded(self, client, seed):
        """A successful dashboard read is logged against the caller."""
        headers = auth_headers(Role.SOCIETY_ADMIN, "soc-S1", user_id="auditee-13")
        r = await client.get(f"{BASE_URL}/api/dashboard/stats", headers=headers)
        assert r.status_code == 200
        await _drain_background_writes()
        assert self._reads_by("auditee-13") == [("read.api.dashboard.stats", "/api/dashboard/stats", "soc-S1")]

    async def test_14_failed_and_non_sensitive_reads_skipped(self, client, seed):
        headers = auth_headers(Role.REGULAR_USER, "soc-S1", user_id="auditee-14")
        r = await client.get(f"{BASE_URL}/api/members", headers=headers)
        assert r.status_code == 403
        r = await client.get(f"{BASE_URL}/api/societies", headers=headers)
        assert r.status_code == 200
        await _drain_background_writes()
        assert self._reads_by("auditee-14") == []


class TestSecurityEventTenancy:

    def test_15_security_events_carry_caller_society(self, tmp_path):
        """Denials are indexed under the society of the caller who was denied."""
        writer = AuditWriter(str(tmp_path))
        caller = make_principal(Role.SOCIETY_ADMIN, "soc-S1", user_id="admin-s1")
        result = authorize(caller, Action.UPDATE, ResourceType.LOAN, existing_owner_tenant_id="soc-S2")
        for event in result.events:
            writer.record_authz_event(event)

        conn = sqlite3.connect(str(writer.sqlite_path))
        try:
            rows = conn.execute(
                "SELECT action FROM audit_events WHERE society_id = ? ORDER BY action", ("soc-S1",)
            ).fetchall()
        finally:
            conn.close()
        assert rows == [("authz.cross_tenant_attempt",), ("authz.denied",)]

    def test_16_expiry_rule(self):
        assert is_expired("system", 30)
        assert not is_expired("system", 29)
        assert is_expired("read_access", 90)
        assert not is_expired("security", 10_000)
        assert not is_expired("mutation", 10_000)
        assert not is_expired("no-such-category", 10_000)

    def test_17_fully_expired_file_removed(self, tmp_path):
        """A daily file holding only expired events is deleted outright."""
        writer = AuditWriter(str(tmp_path))
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        old = now - timedelta(days=45)
        writer.write_sync(dataclasses.replace(make_event("system.startup"), timestamp=old))

        summary = purge_audit_retention(str(tmp_path), now=now)

        assert summary["jsonl_files_removed"] == 1
        assert summary["jsonl_lines_removed"] == 1
        assert not (tmp_path / "jsonl" / f"{old.strftime('%Y-%m-%d')}.jsonl").exists()
