"""Care log lifecycle service.

Owns every state transition of a daily care log (create, update, share a
section, submit, invalidate) and the family read side (filtered
projection plus unviewed-change summary).

Transitions lock the log row with ``SELECT ... FOR UPDATE`` and check the
status only once the lock is held. The audit entry is written after the
mutation has been flushed and is best-effort.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.audit import care_log_snapshot, compute_changes, record_care_log_audit
from carelog.core.config import Settings, get_settings
from carelog.core.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationFailedError
from carelog.core.fields import FIELDS_BY_NAME, TRACKED_FIELDS
from carelog.core.models import (
    AuditAction,
    Caregiver,
    CareLog,
    CareLogAudit,
    CareLogStatus,
    CareLogView,
    CareRecipient,
    SectionName,
    User,
)
from carelog.core.rls import (
    can_access_care_recipient,
    can_invalidate_care_log,
    caregiver_has_access,
    caregiver_owns_care_log,
)
from carelog.core.sections import filter_by_completed_sections, is_visible_to_family, merge_completed_section
from carelog.core.watermark import get_watermark_status, list_audit_entries
from carelog.core.watermark import mark_viewed as upsert_view

logger = logging.getLogger(__name__)

_SECTION_NAMES = frozenset(s.value for s in SectionName)


def _domain_values(payload: BaseModel) -> dict[str, Any]:
    """Explicitly supplied domain fields, JSON-ready, identity fields dropped."""
    data = payload.model_dump(mode="json", exclude_unset=True)
    return {name: value for name, value in data.items() if name in FIELDS_BY_NAME}


def _require_status(log: CareLog, expected: CareLogStatus, action: str) -> None:
    if log.status != expected:
        raise InvalidStateError(
            f"Cannot {action} a care log in status {log.status}",
            expected=expected.value,
            actual=str(log.status),
        )


class CareLogService:
    """Manages the care log lifecycle for caregivers and family."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    # -- Loading ------------------------------------------------------------

    async def _get_log(self, care_log_id: uuid.UUID, *, lock: bool = False) -> CareLog:
        stmt = select(CareLog).where(CareLog.id == care_log_id)
        if lock:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        log = result.scalar_one_or_none()
        if log is None:
            raise NotFoundError(f"Care log {care_log_id} not found")
        return log

    async def _get_owned_draft(self, caregiver: Caregiver, care_log_id: uuid.UUID, action: str) -> CareLog:
        """Lock the log, then check ownership and draft status under the lock."""
        log = await self._get_log(care_log_id, lock=True)
        if not await caregiver_owns_care_log(self._session, caregiver.id, care_log_id):
            logger.warning("Caregiver %s tried to %s care log %s owned by another", caregiver.id, action, care_log_id)
            raise ForbiddenError("You can only modify your own care logs")
        _require_status(log, CareLogStatus.DRAFT, action)
        return log

    async def _require_family_access(self, user: User, care_recipient_id: uuid.UUID) -> None:
        if not await can_access_care_recipient(self._session, user.id, care_recipient_id):
            raise ForbiddenError("You do not have access to this care recipient")

    async def _recipient_today(self, care_recipient_id: uuid.UUID) -> date:
        """Calendar date "today" in the recipient's timezone."""
        result = await self._session.execute(select(CareRecipient.timezone).where(CareRecipient.id == care_recipient_id))
        tz_name = result.scalar_one_or_none() or self._settings.default_timezone
        try:
            tz = ZoneInfo(tz_name)
        except ZoneInfoNotFoundError:
            logger.warning("Unknown timezone %r for care recipient %s, using default", tz_name, care_recipient_id)
            tz = ZoneInfo(self._settings.default_timezone)
        return datetime.now(tz).date()

    # -- Caregiver transitions ----------------------------------------------

    async def create_log(self, caregiver: Caregiver, payload: BaseModel) -> CareLog:
        """Create a draft log for a recipient the caregiver is assigned to.

        Args:
            caregiver: The authenticated caregiver.
            payload: A ``CareLogCreate`` with identity and any domain fields.

        Returns:
            The new draft CareLog.
        """
        care_recipient_id = payload.care_recipient_id
        if not await caregiver_has_access(self._session, caregiver.id, care_recipient_id):
            raise ForbiddenError("Caregiver is not assigned to this care recipient")

        log = CareLog(
            care_recipient_id=care_recipient_id,
            caregiver_id=caregiver.id,
            log_date=payload.log_date,
            status=CareLogStatus.DRAFT,
            completed_sections={},
            **_domain_values(payload),
        )
        self._session.add(log)
        await self._session.flush()
        await self._session.refresh(log)

        await record_care_log_audit(
            self._session,
            care_log_id=log.id,
            changed_by=caregiver.id,
            changed_by_name=caregiver.name,
            action=AuditAction.CREATE,
            snapshot=care_log_snapshot(log),
        )
        logger.info("Care log %s created for recipient %s by caregiver %s", log.id, care_recipient_id, caregiver.id)
        return log

    async def update_log(self, caregiver: Caregiver, care_log_id: uuid.UUID, payload: BaseModel) -> CareLog:
        """Apply a partial update to a draft log.

        Only fields present in the request are written and diffed. An audit
        entry is appended only when at least one tracked field changed.
        """
        log = await self._get_owned_draft(caregiver, care_log_id, "update")

        updates = _domain_values(payload)
        before = log.as_dict()
        for name, value in updates.items():
            setattr(log, name, value)
        await self._session.flush()
        await self._session.refresh(log)

        changes = compute_changes(before, updates, TRACKED_FIELDS)
        if changes:
            await record_care_log_audit(
                self._session,
                care_log_id=log.id,
                changed_by=caregiver.id,
                changed_by_name=caregiver.name,
                action=AuditAction.UPDATE,
                changes=changes,
                snapshot=care_log_snapshot(log),
            )
        logger.info("Care log %s updated by caregiver %s: %s", log.id, caregiver.id, sorted(changes) or "no changes")
        return log

    async def submit_section(self, caregiver: Caregiver, care_log_id: uuid.UUID, section: SectionName) -> CareLog:
        """Share one section with family while the log stays a draft.

        Re-sharing a section keeps its entry and advances ``submitted_at``.
        The merge reads the map under the row lock so concurrent submissions
        of different sections both survive.
        """
        log = await self._get_owned_draft(caregiver, care_log_id, "submit a section of")

        log.completed_sections = merge_completed_section(
            log.completed_sections, section, caregiver.id, datetime.now(UTC)
        )
        await self._session.flush()
        await self._session.refresh(log)

        await record_care_log_audit(
            self._session,
            care_log_id=log.id,
            changed_by=caregiver.id,
            changed_by_name=caregiver.name,
            action=AuditAction.SUBMIT_SECTION,
            section_submitted=section.value,
        )
        logger.info("Care log %s section %s shared by caregiver %s", log.id, section.value, caregiver.id)
        return log

    async def submit_log(self, caregiver: Caregiver, care_log_id: uuid.UUID) -> CareLog:
        """Finalize a draft. The log is frozen until an admin invalidates it."""
        log = await self._get_owned_draft(caregiver, care_log_id, "submit")

        log.status = CareLogStatus.SUBMITTED
        log.submitted_at = datetime.now(UTC)
        await self._session.flush()
        await self._session.refresh(log)

        await record_care_log_audit(
            self._session,
            care_log_id=log.id,
            changed_by=caregiver.id,
            changed_by_name=caregiver.name,
            action=AuditAction.SUBMIT,
            snapshot=care_log_snapshot(log),
        )
        logger.info("Care log %s submitted by caregiver %s", log.id, caregiver.id)
        return log

    # -- Family transitions -------------------------------------------------

    async def invalidate_log(self, user: User, care_log_id: uuid.UUID, reason: str) -> CareLog:
        """Re-open a submitted log for caregiver edits.

        Shared sections stay shared. No audit entry is written: the
        invalidation fields on the log are the record.
        """
        if not reason or not reason.strip():
            raise ValidationFailedError("An invalidation reason is required", field="reason")

        log = await self._get_log(care_log_id, lock=True)
        if not await can_invalidate_care_log(self._session, user.id, care_log_id):
            logger.warning("User %s denied invalidation of care log %s", user.id, care_log_id)
            raise ForbiddenError("Only the care recipient's family admin can invalidate a care log")
        _require_status(log, CareLogStatus.SUBMITTED, "invalidate")

        log.status = CareLogStatus.DRAFT
        log.invalidated_at = datetime.now(UTC)
        log.invalidated_by = user.id
        log.invalidation_reason = reason.strip()
        await self._session.flush()
        await self._session.refresh(log)

        logger.info("Care log %s invalidated by user %s: %s", log.id, user.id, log.invalidation_reason)
        return log

    async def mark_viewed(self, user: User, care_log_id: uuid.UUID) -> CareLogView:
        log = await self._get_log(care_log_id)
        await self._require_family_access(user, log.care_recipient_id)
        return await upsert_view(self._session, care_log_id, user.id)

    # -- Family reads -------------------------------------------------------

    async def _family_view(self, user: User, log: CareLog) -> dict[str, Any]:
        """Filtered projection plus the requester's unviewed-change summary."""
        data = log.as_dict()
        visible = filter_by_completed_sections(data, data.get("completed_sections"))
        status = await get_watermark_status(
            self._session,
            log.id,
            user.id,
            resolution_seconds=self._settings.watermark_resolution_seconds,
        )
        visible["has_unviewed_changes"] = status.has_unviewed_changes
        visible["changed_fields"] = [name for name in status.changed_fields if name in visible or name in _SECTION_NAMES]
        return visible

    async def get_logs_for_recipient(self, user: User, care_recipient_id: uuid.UUID) -> list[dict[str, Any]]:
        """Submitted logs and drafts with at least one shared section, newest first."""
        await self._require_family_access(user, care_recipient_id)

        result = await self._session.execute(
            select(CareLog)
            .where(CareLog.care_recipient_id == care_recipient_id)
            .order_by(CareLog.log_date.desc(), CareLog.created_at.desc())
        )
        projections = []
        for log in result.scalars().all():
            data = log.as_dict()
            if is_visible_to_family(data):
                projections.append(filter_by_completed_sections(data, data.get("completed_sections")))
        return projections

    async def _visible_log_for_date(
        self, user: User, care_recipient_id: uuid.UUID, log_date: date
    ) -> dict[str, Any] | None:
        result = await self._session.execute(
            select(CareLog)
            .where(CareLog.care_recipient_id == care_recipient_id, CareLog.log_date == log_date)
            .order_by(CareLog.created_at.desc())
        )
        for log in result.scalars().all():
            if is_visible_to_family(log.as_dict()):
                return await self._family_view(user, log)
        return None

    async def get_log_for_date(
        self, user: User, care_recipient_id: uuid.UUID, log_date: date
    ) -> dict[str, Any] | None:
        """The most recent visible log for a calendar date, or None."""
        await self._require_family_access(user, care_recipient_id)
        return await self._visible_log_for_date(user, care_recipient_id, log_date)

    async def get_today_log(self, user: User, care_recipient_id: uuid.UUID) -> dict[str, Any] | None:
        await self._require_family_access(user, care_recipient_id)
        today = await self._recipient_today(care_recipient_id)
        return await self._visible_log_for_date(user, care_recipient_id, today)

    async def get_family_log(self, user: User, care_log_id: uuid.UUID) -> dict[str, Any]:
        log = await self._get_log(care_log_id)
        await self._require_family_access(user, log.care_recipient_id)
        if not is_visible_to_family(log.as_dict()):
            raise NotFoundError(f"Care log {care_log_id} not found")
        return await self._family_view(user, log)

    async def get_history(self, user: User, care_log_id: uuid.UUID) -> list[dict[str, Any]]:
        """Audit entries, most recent first.

        Diffs of fields in sections not yet shared are dropped, so history
        never shows more than the filtered log does.
        """
        log = await self._get_log(care_log_id)
        await self._require_family_access(user, log.care_recipient_id)

        data = log.as_dict()
        visible = set(filter_by_completed_sections(data, data.get("completed_sections")))
        entries: list[CareLogAudit] = await list_audit_entries(self._session, care_log_id, newest_first=True)
        history = []
        for entry in entries:
            changes = entry.changes
            if changes:
                changes = {name: diff for name, diff in changes.items() if name in visible}
            history.append(
                {
                    "id": entry.id,
                    "care_log_id": entry.care_log_id,
                    "changed_by": entry.changed_by,
                    "changed_by_name": entry.changed_by_name,
                    "action": entry.action,
                    "section_submitted": entry.section_submitted,
                    "changes": changes,
                    "created_at": entry.created_at,
                }
            )
        return history

    # -- Caregiver reads ----------------------------------------------------

    async def get_caregiver_today_log(self, caregiver: Caregiver) -> CareLog | None:
        """The caregiver's own log for today, unfiltered, or None."""
        today = await self._recipient_today(caregiver.care_recipient_id)
        result = await self._session.execute(
            select(CareLog)
            .where(
                CareLog.caregiver_id == caregiver.id,
                CareLog.care_recipient_id == caregiver.care_recipient_id,
                CareLog.log_date == today,
            )
            .order_by(CareLog.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
