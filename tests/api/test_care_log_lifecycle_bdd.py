"""BDD tests for the care log lifecycle and progressive family visibility.

Covers the acceptance scenarios:
1. State monotonicity: double submit and update-after-submit are rejected
2. Invalidation round-trip: submit, invalidate, edit, submit again
3. Visibility gating: family sees only shared sections of a draft
4. Re-sharing a section advances its timestamp and flags unviewed changes
5. Diff correctness: only the changed field is recorded
6. Ownership and assignment checks for caregivers and family
7. Full day: create, share morning, share daily summary, submit, frozen
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from carelog.api.schemas.care_log import CareLogCreate, CareLogUpdate
from carelog.api.services.care_log import CareLogService
from carelog.core.config import Settings
from carelog.core.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationFailedError
from carelog.core.models import (
    AuditAction,
    Caregiver,
    CareLog,
    CareLogAudit,
    CareLogStatus,
    CareLogView,
    SectionName,
    User,
    UserRole,
)

RECIPIENT_ID = uuid.uuid4()
TODAY = date(2026, 10, 19)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Savepoint:
    async def __aenter__(self) -> _Savepoint:
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


def _refresh(obj: Any) -> None:
    if getattr(obj, "id", None) is None:
        obj.id = uuid.uuid4()
    now = datetime.now(UTC)
    for attr in ("created_at", "updated_at"):
        if getattr(obj, attr, None) is None:
            setattr(obj, attr, now)


def _mock_session(*results: MagicMock) -> AsyncMock:
    """Session whose successive execute() calls return ``results`` in order."""
    session = AsyncMock()
    session.execute = AsyncMock(side_effect=list(results))
    session.flush = AsyncMock()
    session.refresh = AsyncMock(side_effect=_refresh)
    session.add = MagicMock()
    session.begin_nested = MagicMock(side_effect=lambda: _Savepoint())
    return session


def _one(value: Any) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


def _flag(value: bool) -> MagicMock:
    result = MagicMock()
    result.scalar.return_value = value
    return result


def _many(values: list[Any]) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _audits(session: AsyncMock) -> list[CareLogAudit]:
    return [c.args[0] for c in session.add.call_args_list if isinstance(c.args[0], CareLogAudit)]


def _caregiver(name: str = "Siti") -> MagicMock:
    caregiver = MagicMock(spec=Caregiver)
    caregiver.id = uuid.uuid4()
    caregiver.name = name
    caregiver.care_recipient_id = RECIPIENT_ID
    caregiver.active = True
    return caregiver


def _user(role: UserRole = UserRole.FAMILY_MEMBER) -> MagicMock:
    user = MagicMock(spec=User)
    user.id = uuid.uuid4()
    user.role = role
    return user


def _draft(caregiver: MagicMock, **fields: Any) -> CareLog:
    now = datetime.now(UTC)
    return CareLog(
        id=uuid.uuid4(),
        care_recipient_id=RECIPIENT_ID,
        caregiver_id=caregiver.id,
        log_date=TODAY,
        status=CareLogStatus.DRAFT,
        completed_sections={},
        created_at=now,
        updated_at=now,
        **fields,
    )


def _service(session: AsyncMock) -> CareLogService:
    return CareLogService(session, Settings(_env_file=None))  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Scenario 1: State monotonicity
# ---------------------------------------------------------------------------


class TestStateMonotonicity:
    """Given a submitted log, further caregiver transitions are rejected."""

    @pytest.mark.asyncio
    async def test_double_submit_rejected(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver)
        session = _mock_session(_one(log), _one(caregiver.id), _one(log), _one(caregiver.id))
        service = _service(session)

        await service.submit_log(caregiver, log.id)
        assert log.status == CareLogStatus.SUBMITTED

        with pytest.raises(InvalidStateError) as exc_info:
            await service.submit_log(caregiver, log.id)
        assert exc_info.value.expected == "draft"
        assert exc_info.value.actual == "submitted"

    @pytest.mark.asyncio
    async def test_update_after_submit_rejected(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver, mood="alert")
        log.status = CareLogStatus.SUBMITTED
        session = _mock_session(_one(log), _one(caregiver.id))

        with pytest.raises(InvalidStateError):
            await _service(session).update_log(caregiver, log.id, CareLogUpdate(mood="calm"))
        assert log.mood == "alert"
        session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_section_after_finalize_rejected(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver)
        log.status = CareLogStatus.SUBMITTED
        session = _mock_session(_one(log), _one(caregiver.id))

        with pytest.raises(InvalidStateError):
            await _service(session).submit_section(caregiver, log.id, SectionName.EVENING)
        assert log.completed_sections == {}

    @pytest.mark.asyncio
    async def test_status_checked_on_locked_row(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver)
        session = _mock_session(_one(log), _one(caregiver.id))

        await _service(session).submit_log(caregiver, log.id)

        first_stmt = session.execute.call_args_list[0].args[0]
        assert first_stmt._for_update_arg is not None


# ---------------------------------------------------------------------------
# Scenario 2: Invalidation round-trip
# ---------------------------------------------------------------------------


class TestInvalidationRoundTrip:
    """Given a submitted log, when the owning admin invalidates it, the caregiver can edit and resubmit."""

    @pytest.mark.asyncio
    async def test_round_trip(self) -> None:
        caregiver = _caregiver()
        admin = _user(UserRole.FAMILY_ADMIN)
        log = _draft(caregiver, mood="alert")
        log.completed_sections = {"morning": {"submitted_at": "2026-10-19T09:00:00+00:00", "submitted_by": "x"}}
        session = _mock_session(
            # submit
            _one(log),
            _one(caregiver.id),
            # invalidate
            _one(log),
            _flag(True),
            # update
            _one(log),
            _one(caregiver.id),
            # submit again
            _one(log),
            _one(caregiver.id),
        )
        service = _service(session)

        await service.submit_log(caregiver, log.id)
        first_submitted_at = log.submitted_at
        await service.invalidate_log(admin, log.id, "  Wrong blood pressure  ")

        assert log.status == CareLogStatus.DRAFT
        assert log.submitted_at == first_submitted_at
        assert log.invalidated_by == admin.id
        assert log.invalidation_reason == "Wrong blood pressure"
        assert log.invalidated_at is not None
        assert "morning" in log.completed_sections

        await service.update_log(caregiver, log.id, CareLogUpdate(blood_pressure="120/80"))
        await service.submit_log(caregiver, log.id)

        actions = [a.action for a in _audits(session)]
        assert actions == [AuditAction.SUBMIT, AuditAction.UPDATE, AuditAction.SUBMIT]
        submits = [a for a in _audits(session) if a.action == AuditAction.SUBMIT]
        assert submits[0] is not submits[1]
        assert log.submitted_at >= first_submitted_at

    @pytest.mark.asyncio
    async def test_invalidation_keeps_first_submission_time(self) -> None:
        submitted_at = datetime(2026, 10, 19, 18, 0, tzinfo=UTC)
        log = _draft(_caregiver())
        log.status = CareLogStatus.SUBMITTED
        log.submitted_at = submitted_at
        session = _mock_session(_one(log), _flag(True))

        await _service(session).invalidate_log(_user(UserRole.FAMILY_ADMIN), log.id, "wrong meds")

        assert log.status == CareLogStatus.DRAFT
        assert log.submitted_at == submitted_at
        assert log.invalidation_reason == "wrong meds"

    @pytest.mark.asyncio
    async def test_invalidating_draft_rejected(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver)
        session = _mock_session(_one(log), _flag(True))

        with pytest.raises(InvalidStateError) as exc_info:
            await _service(session).invalidate_log(_user(UserRole.FAMILY_ADMIN), log.id, "typo")
        assert exc_info.value.expected == "submitted"

    @pytest.mark.asyncio
    async def test_blank_reason_rejected_before_any_read(self) -> None:
        session = _mock_session()
        with pytest.raises(ValidationFailedError) as exc_info:
            await _service(session).invalidate_log(_user(UserRole.FAMILY_ADMIN), uuid.uuid4(), "   ")
        assert exc_info.value.field == "reason"
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_member_cannot_invalidate(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver)
        log.status = CareLogStatus.SUBMITTED
        session = _mock_session(_one(log), _flag(False))

        with pytest.raises(ForbiddenError):
            await _service(session).invalidate_log(_user(UserRole.FAMILY_MEMBER), log.id, "typo")
        assert log.status == CareLogStatus.SUBMITTED


# ---------------------------------------------------------------------------
# Scenario 3: Visibility gating
# ---------------------------------------------------------------------------


class TestVisibilityGating:
    """Given a draft with data in every section, family sees only what was shared."""

    @staticmethod
    def _filled(caregiver: MagicMock) -> CareLog:
        return _draft(
            caregiver,
            wake_time="07:00",
            mood="alert",
            night_sleep={"bedtime": "21:30", "quality": "light", "wakings": 1},
            notes="Quiet day",
            actual_falls="none",
            medications=[{"name": "Madopar", "given": True, "time_slot": "after_breakfast"}],
        )

    @pytest.mark.asyncio
    async def test_unshared_draft_is_hidden_from_family(self) -> None:
        log = self._filled(_caregiver())
        session = _mock_session(_one(log), _flag(True))

        with pytest.raises(NotFoundError):
            await _service(session).get_family_log(_user(), log.id)

    @pytest.mark.asyncio
    async def test_morning_shared(self) -> None:
        caregiver = _caregiver()
        log = self._filled(caregiver)
        log.completed_sections = {"morning": {"submitted_at": "2026-10-19T09:00:00+00:00", "submitted_by": "x"}}
        session = _mock_session(_one(log), _flag(True), _one(None), _many([]))

        view = await _service(session).get_family_log(_user(), log.id)

        assert view["wake_time"] == "07:00"
        assert view["medications"][0]["name"] == "Madopar"
        assert "night_sleep" not in view
        assert "notes" not in view

    @pytest.mark.asyncio
    async def test_submitted_shows_everything(self) -> None:
        log = self._filled(_caregiver())
        log.status = CareLogStatus.SUBMITTED
        session = _mock_session(_one(log), _flag(True), _one(None), _many([]))

        view = await _service(session).get_family_log(_user(), log.id)
        assert view["night_sleep"]["quality"] == "light"
        assert view["notes"] == "Quiet day"

    @pytest.mark.asyncio
    async def test_recipient_list_skips_unshared_drafts(self) -> None:
        caregiver = _caregiver()
        hidden = self._filled(caregiver)
        shared = self._filled(caregiver)
        shared.completed_sections = {"evening": {"submitted_at": "2026-10-19T20:00:00+00:00", "submitted_by": "x"}}
        submitted = self._filled(caregiver)
        submitted.status = CareLogStatus.SUBMITTED
        session = _mock_session(_flag(True), _many([submitted, hidden, shared]))

        logs = await _service(session).get_logs_for_recipient(_user(), RECIPIENT_ID)

        assert [entry["id"] for entry in logs] == [submitted.id, shared.id]
        assert "wake_time" not in logs[1]
        assert logs[1]["night_sleep"]["wakings"] == 1

    @pytest.mark.asyncio
    async def test_history_hides_diffs_of_unshared_sections(self) -> None:
        caregiver = _caregiver()
        log = self._filled(caregiver)
        log.completed_sections = {"morning": {"submitted_at": "2026-10-19T09:00:00+00:00", "submitted_by": "x"}}
        entry = CareLogAudit(
            id=uuid.uuid4(),
            care_log_id=log.id,
            changed_by=caregiver.id,
            changed_by_name="Siti",
            action=AuditAction.UPDATE,
            changes={
                "mood": {"old": "alert", "new": "calm"},
                "night_sleep": {"old": None, "new": {"quality": "light"}},
            },
            created_at=datetime.now(UTC),
        )
        session = _mock_session(_one(log), _flag(True), _many([entry]))

        history = await _service(session).get_history(_user(), log.id)

        assert history[0]["changes"] == {"mood": {"old": "alert", "new": "calm"}}
        assert history[0]["changed_by_name"] == "Siti"


# ---------------------------------------------------------------------------
# Scenario 4: Re-sharing a section
# ---------------------------------------------------------------------------


class TestSectionResubmission:
    """Given morning already shared and viewed, re-sharing it is reported as unviewed."""

    @pytest.mark.asyncio
    async def test_resubmission_advances_timestamp_and_audits(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver)
        session = _mock_session(_one(log), _one(caregiver.id), _one(log), _one(caregiver.id))
        service = _service(session)

        await service.submit_section(caregiver, log.id, SectionName.MORNING)
        first = dict(log.completed_sections["morning"])
        await service.submit_section(caregiver, log.id, SectionName.MORNING)
        second = log.completed_sections["morning"]

        assert second["submitted_by"] == first["submitted_by"] == str(caregiver.id)
        assert second["submitted_at"] >= first["submitted_at"]
        audits = _audits(session)
        assert [a.section_submitted for a in audits] == ["morning", "morning"]
        assert all(a.changes is None for a in audits)

    @pytest.mark.asyncio
    async def test_view_between_submissions_flags_changes(self) -> None:
        caregiver = _caregiver()
        member = _user()
        log = _draft(caregiver)
        log.completed_sections = {"morning": {"submitted_at": "2026-10-19T09:10:00+00:00", "submitted_by": "x"}}
        base = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)
        entries = [
            CareLogAudit(action=AuditAction.SUBMIT_SECTION, section_submitted="morning", created_at=base),
            CareLogAudit(
                action=AuditAction.SUBMIT_SECTION,
                section_submitted="morning",
                created_at=base + timedelta(minutes=10),
            ),
        ]
        view = CareLogView(care_log_id=log.id, user_id=member.id, viewed_at=base + timedelta(minutes=5))
        session = _mock_session(_one(log), _flag(True), _one(view), _many(entries))

        result = await _service(session).get_family_log(member, log.id)

        assert result["has_unviewed_changes"] is True
        assert result["changed_fields"] == ["morning"]

    @pytest.mark.asyncio
    async def test_changed_fields_limited_to_visible(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver, mood="calm")
        log.completed_sections = {"morning": {"submitted_at": "2026-10-19T09:00:00+00:00", "submitted_by": "x"}}
        entries = [
            CareLogAudit(
                action=AuditAction.UPDATE,
                changes={"mood": {"old": "alert", "new": "calm"}, "notes": {"old": None, "new": "hidden"}},
                created_at=datetime.now(UTC),
            )
        ]
        session = _mock_session(_one(log), _flag(True), _one(None), _many(entries))

        result = await _service(session).get_family_log(_user(), log.id)
        assert result["changed_fields"] == ["mood"]


# ---------------------------------------------------------------------------
# Scenario 5: Diff correctness
# ---------------------------------------------------------------------------


class TestDiffCorrectness:
    @pytest.mark.asyncio
    async def test_only_mood_recorded(self) -> None:
        caregiver = _caregiver()
        unchanged = {
            "wake_time": "07:00",
            "shower_time": "08:00",
            "hair_wash": True,
            "blood_pressure": "120/80",
            "pulse_rate": 72,
            "oxygen_level": 97,
            "vitals_time": "08:30",
            "notes": "ok",
            "balance_issues": 2,
            "total_fluid_intake": 900,
        }
        log = _draft(caregiver, mood="alert", **unchanged)
        session = _mock_session(_one(log), _one(caregiver.id))

        await _service(session).update_log(caregiver, log.id, CareLogUpdate(mood="calm", **unchanged))

        (audit,) = _audits(session)
        assert audit.action == AuditAction.UPDATE
        assert audit.changes == {"mood": {"old": "alert", "new": "calm"}}
        assert audit.snapshot["mood"] == "calm"

    @pytest.mark.asyncio
    async def test_no_op_update_writes_no_audit(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver, mood="alert")
        session = _mock_session(_one(log), _one(caregiver.id))

        await _service(session).update_log(caregiver, log.id, CareLogUpdate(mood="alert"))
        assert _audits(session) == []

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_block_update(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver, mood="alert")
        session = _mock_session(_one(log), _one(caregiver.id))
        session.begin_nested = MagicMock(side_effect=RuntimeError("audit table locked"))

        updated = await _service(session).update_log(caregiver, log.id, CareLogUpdate(mood="calm"))
        assert updated.mood == "calm"


# ---------------------------------------------------------------------------
# Scenario 6: Ownership and assignment
# ---------------------------------------------------------------------------


class TestOwnershipAndAssignment:
    @pytest.mark.asyncio
    async def test_unassigned_caregiver_cannot_create(self) -> None:
        session = _mock_session(_flag(False))
        payload = CareLogCreate(care_recipient_id=RECIPIENT_ID, log_date=TODAY)

        with pytest.raises(ForbiddenError):
            await _service(session).create_log(_caregiver(), payload)
        session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_caregiver_cannot_update(self) -> None:
        author = _caregiver("Siti")
        other = _caregiver("Maria")
        log = _draft(author, mood="alert")
        session = _mock_session(_one(log), _one(author.id))

        with pytest.raises(ForbiddenError):
            await _service(session).update_log(other, log.id, CareLogUpdate(mood="calm"))
        assert log.mood == "alert"

    @pytest.mark.asyncio
    async def test_unknown_log_is_not_found(self) -> None:
        session = _mock_session(_one(None))
        with pytest.raises(NotFoundError):
            await _service(session).submit_log(_caregiver(), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_family_without_grant_is_forbidden(self) -> None:
        session = _mock_session(_flag(False))
        with pytest.raises(ForbiddenError):
            await _service(session).get_logs_for_recipient(_user(), RECIPIENT_ID)

    @pytest.mark.asyncio
    async def test_revoked_member_loses_access_on_next_request(self) -> None:
        caregiver = _caregiver()
        member = _user()
        log = _draft(caregiver)
        log.status = CareLogStatus.SUBMITTED
        session = _mock_session(_flag(True), _many([log]), _flag(False))
        service = _service(session)

        assert len(await service.get_logs_for_recipient(member, RECIPIENT_ID)) == 1
        with pytest.raises(ForbiddenError):
            await service.get_logs_for_recipient(member, RECIPIENT_ID)

    @pytest.mark.asyncio
    async def test_mark_viewed_requires_access(self) -> None:
        log = _draft(_caregiver())
        session = _mock_session(_one(log), _flag(False))
        with pytest.raises(ForbiddenError):
            await _service(session).mark_viewed(_user(), log.id)
        assert session.execute.await_count == 2


# ---------------------------------------------------------------------------
# Scenario 7: A full day
# ---------------------------------------------------------------------------


class TestFullDay:
    """Caregiver C logs a day for R while member M follows along."""

    @pytest.mark.asyncio
    async def test_full_day(self) -> None:
        caregiver = _caregiver()
        member = _user()

        # Given C creates today's log with morning and evening data
        session = _mock_session(_flag(True))
        payload = CareLogCreate(
            care_recipient_id=RECIPIENT_ID,
            log_date=TODAY,
            wake_time="07:00",
            mood="alert",
            night_sleep={"bedtime": "21:30", "quality": "light", "wakings": 1},
        )
        log = await _service(session).create_log(caregiver, payload)
        assert log.status == CareLogStatus.DRAFT
        assert log.caregiver_id == caregiver.id
        (created,) = _audits(session)
        assert created.action == AuditAction.CREATE
        assert created.snapshot["wake_time"] == "07:00"

        # When C shares morning, M sees wake time but not night sleep
        session = _mock_session(_one(log), _one(caregiver.id))
        await _service(session).submit_section(caregiver, log.id, SectionName.MORNING)

        session = _mock_session(_flag(True), _one("Asia/Singapore"), _many([log]), _one(None), _many([]))
        today = await _service(session).get_today_log(member, RECIPIENT_ID)
        assert today is not None
        assert today["wake_time"] == "07:00"
        assert "night_sleep" not in today
        assert "notes" not in today

        # When C adds notes and shares the daily summary, M sees them
        session = _mock_session(_one(log), _one(caregiver.id))
        await _service(session).update_log(caregiver, log.id, CareLogUpdate(notes="Walked in the garden"))
        session = _mock_session(_one(log), _one(caregiver.id))
        await _service(session).submit_section(caregiver, log.id, SectionName.DAILY_SUMMARY)

        session = _mock_session(_flag(True), _many([log]), _one(None), _many([]))
        dated = await _service(session).get_log_for_date(member, RECIPIENT_ID, TODAY)
        assert dated is not None
        assert dated["notes"] == "Walked in the garden"
        assert "night_sleep" not in dated

        # Then C submits and the log is frozen
        session = _mock_session(_one(log), _one(caregiver.id))
        await _service(session).submit_log(caregiver, log.id)
        assert log.status == CareLogStatus.SUBMITTED
        assert log.submitted_at is not None

        session = _mock_session(_one(log), _one(caregiver.id))
        with pytest.raises(InvalidStateError):
            await _service(session).update_log(caregiver, log.id, CareLogUpdate(mood="calm"))


class TestCaregiverToday:
    @pytest.mark.asyncio
    async def test_returns_own_log(self) -> None:
        caregiver = _caregiver()
        log = _draft(caregiver)
        session = _mock_session(_one("Asia/Singapore"), _one(log))
        assert await _service(session).get_caregiver_today_log(caregiver) is log

    @pytest.mark.asyncio
    async def test_unknown_timezone_falls_back(self, caplog: pytest.LogCaptureFixture) -> None:
        caregiver = _caregiver()
        session = _mock_session(_one("Mars/Olympus_Mons"), _one(None))
        assert await _service(session).get_caregiver_today_log(caregiver) is None
        assert "Unknown timezone" in caplog.text
