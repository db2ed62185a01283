"""Tests for the care log audit trail (carelog/core/audit.py).

Covers field-level diffs, snapshots, and the best-effort writer that must
never fail the primary mutation.
"""

from __future__ import annotations

import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from carelog.core.audit import care_log_snapshot, compute_changes, record_care_log_audit
from carelog.core.fields import TRACKED_FIELDS
from carelog.core.models import AuditAction, CareLog, CareLogAudit, CareLogStatus


class _Savepoint:
    async def __aenter__(self) -> _Savepoint:
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


def _mock_session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.begin_nested = MagicMock(return_value=_Savepoint())
    return session


# ---------------------------------------------------------------------------
# compute_changes
# ---------------------------------------------------------------------------


class TestComputeChanges:
    def test_only_changed_field_is_reported(self) -> None:
        """Updating mood alone yields exactly one entry, even with unchanged fields in the body."""
        old = {
            "mood": "alert",
            "wake_time": "07:00",
            "pulse_rate": 72,
            "oxygen_level": 97,
            "hair_wash": True,
            "notes": "ok",
            "balance_issues": 2,
            "near_falls": "none",
            "actual_falls": "none",
            "total_fluid_intake": 900,
            "meals": {"breakfast": {"time": "08:00", "appetite": 4, "amount_eaten": 80}},
        }
        new = dict(old, mood="calm")

        assert compute_changes(old, new, TRACKED_FIELDS) == {"mood": {"old": "alert", "new": "calm"}}

    def test_absent_fields_are_not_changes(self) -> None:
        old = {"mood": "alert", "notes": "keep me"}
        assert compute_changes(old, {"mood": "alert"}, TRACKED_FIELDS) == {}

    def test_explicit_none_is_a_change(self) -> None:
        changes = compute_changes({"notes": "remove me"}, {"notes": None}, TRACKED_FIELDS)
        assert changes == {"notes": {"old": "remove me", "new": None}}

    def test_nested_objects_compared_by_value_not_key_order(self) -> None:
        old = {"oral_care": {"teeth_brushed": True, "times_brushed": 2}}
        new = {"oral_care": {"times_brushed": 2, "teeth_brushed": True}}
        assert compute_changes(old, new, TRACKED_FIELDS) == {}

    def test_list_change_records_full_values(self) -> None:
        old = {"medications": [{"name": "Madopar", "given": False, "time_slot": "after_breakfast"}]}
        new = {"medications": [{"name": "Madopar", "given": True, "time_slot": "after_breakfast"}]}
        changes = compute_changes(old, new, TRACKED_FIELDS)
        assert changes["medications"]["old"][0]["given"] is False
        assert changes["medications"]["new"][0]["given"] is True

    def test_untracked_fields_ignored(self) -> None:
        assert compute_changes({"status": "draft"}, {"status": "submitted"}, TRACKED_FIELDS) == {}

    def test_new_value_for_previously_missing_field(self) -> None:
        assert compute_changes({}, {"wake_time": "06:45"}, ["wake_time"]) == {
            "wake_time": {"old": None, "new": "06:45"}
        }


class TestCareLogSnapshot:
    def test_snapshot_is_json_ready(self) -> None:
        log = CareLog(
            id=uuid.uuid4(),
            care_recipient_id=uuid.uuid4(),
            log_date=date(2026, 10, 19),
            status=CareLogStatus.DRAFT,
            mood="calm",
        )
        snapshot = care_log_snapshot(log)

        assert snapshot["id"] == str(log.id)
        assert snapshot["log_date"] == "2026-10-19"
        assert snapshot["status"] == "draft"
        assert snapshot["mood"] == "calm"
        assert "night_sleep" in snapshot


# ---------------------------------------------------------------------------
# record_care_log_audit
# ---------------------------------------------------------------------------


class TestRecordCareLogAudit:
    @pytest.mark.asyncio
    async def test_entry_written_inside_savepoint(self) -> None:
        session = _mock_session()
        log_id = uuid.uuid4()
        actor = uuid.uuid4()

        entry = await record_care_log_audit(
            session,
            care_log_id=log_id,
            changed_by=actor,
            changed_by_name="Siti",
            action=AuditAction.UPDATE,
            changes={"mood": {"old": "alert", "new": "calm"}},
        )

        session.begin_nested.assert_called_once()
        session.add.assert_called_once()
        added = session.add.call_args[0][0]
        assert isinstance(added, CareLogAudit)
        assert added is entry
        assert added.care_log_id == log_id
        assert added.changed_by == actor
        assert added.action == AuditAction.UPDATE
        assert added.changes == {"mood": {"old": "alert", "new": "calm"}}

    @pytest.mark.asyncio
    async def test_section_submission_has_no_diff(self) -> None:
        session = _mock_session()
        entry = await record_care_log_audit(
            session,
            care_log_id=uuid.uuid4(),
            changed_by=uuid.uuid4(),
            changed_by_name="Siti",
            action=AuditAction.SUBMIT_SECTION,
            section_submitted="morning",
        )
        assert entry is not None
        assert entry.section_submitted == "morning"
        assert entry.changes is None

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_swallowed(self, caplog: pytest.LogCaptureFixture) -> None:
        session = _mock_session()
        session.flush = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("boom")))

        entry = await record_care_log_audit(
            session,
            care_log_id=uuid.uuid4(),
            changed_by=uuid.uuid4(),
            changed_by_name=None,
            action=AuditAction.SUBMIT,
        )

        assert entry is None
        assert "Failed to record submit audit entry" in caplog.text

    @pytest.mark.asyncio
    async def test_savepoint_failure_is_swallowed(self) -> None:
        session = _mock_session()
        session.begin_nested = MagicMock(side_effect=RuntimeError("no transaction"))

        entry = await record_care_log_audit(
            session,
            care_log_id=uuid.uuid4(),
            changed_by=uuid.uuid4(),
            changed_by_name=None,
            action=AuditAction.CREATE,
        )
        assert entry is None
