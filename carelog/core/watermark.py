"""Per-user "changed since you last looked" detection.

Each family user has at most one view record per care log. Its
``viewed_at`` is a watermark compared against audit entry timestamps.

Timestamps on both sides are truncated to ``watermark_resolution_seconds``
before comparing, so an edit landing in the same second as a view is not
reported (with the default resolution of one second). A resolution of 0
compares at full precision.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.models import AuditAction, CareLogAudit, CareLogView

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class WatermarkStatus:
    """Unviewed-change summary for one (care log, user) pair."""

    has_unviewed_changes: bool
    changed_fields: list[str] = field(default_factory=list)
    viewed_at: datetime | None = None


def truncate_timestamp(value: datetime, resolution_seconds: int) -> datetime:
    """Floor ``value`` to a multiple of ``resolution_seconds`` since the epoch.

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    if resolution_seconds <= 0:
        return value
    step = timedelta(seconds=resolution_seconds)
    return _EPOCH + ((value - _EPOCH) // step) * step


def unviewed_entries(
    entries: Iterable[CareLogAudit],
    viewed_at: datetime | None,
    resolution_seconds: int = 1,
) -> list[CareLogAudit]:
    """Audit entries written after the watermark.

    With no watermark every entry is unviewed.
    """
    if viewed_at is None:
        return list(entries)
    watermark = truncate_timestamp(viewed_at, resolution_seconds)
    return [e for e in entries if truncate_timestamp(e.created_at, resolution_seconds) > watermark]


def collect_changed_fields(entries: Iterable[CareLogAudit]) -> list[str]:
    """Union of diffed field names and submitted section names, sorted."""
    names: set[str] = set()
    for entry in entries:
        if entry.changes:
            names.update(entry.changes.keys())
        if entry.action == AuditAction.SUBMIT_SECTION and entry.section_submitted:
            names.add(entry.section_submitted)
    return sorted(names)


def summarize_unviewed(
    entries: Sequence[CareLogAudit],
    viewed_at: datetime | None,
    resolution_seconds: int = 1,
) -> WatermarkStatus:
    unviewed = unviewed_entries(entries, viewed_at, resolution_seconds)
    return WatermarkStatus(
        has_unviewed_changes=bool(unviewed),
        changed_fields=collect_changed_fields(unviewed),
        viewed_at=viewed_at,
    )


# ---------------------------------------------------------------------------
# Database access
# ---------------------------------------------------------------------------


async def get_view_record(session: AsyncSession, care_log_id: UUID, user_id: UUID) -> CareLogView | None:
    result = await session.execute(
        select(CareLogView).where(
            CareLogView.care_log_id == care_log_id,
            CareLogView.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def list_audit_entries(
    session: AsyncSession,
    care_log_id: UUID,
    *,
    newest_first: bool = False,
) -> list[CareLogAudit]:
    """Audit entries for a log, oldest first unless ``newest_first``."""
    order = CareLogAudit.created_at.desc() if newest_first else CareLogAudit.created_at.asc()
    result = await session.execute(select(CareLogAudit).where(CareLogAudit.care_log_id == care_log_id).order_by(order))
    return list(result.scalars().all())


async def get_watermark_status(
    session: AsyncSession,
    care_log_id: UUID,
    user_id: UUID,
    *,
    resolution_seconds: int = 1,
) -> WatermarkStatus:
    view = await get_view_record(session, care_log_id, user_id)
    entries = await list_audit_entries(session, care_log_id)
    return summarize_unviewed(entries, view.viewed_at if view else None, resolution_seconds)


async def has_unviewed_changes(
    session: AsyncSession,
    care_log_id: UUID,
    user_id: UUID,
    *,
    resolution_seconds: int = 1,
) -> bool:
    status = await get_watermark_status(session, care_log_id, user_id, resolution_seconds=resolution_seconds)
    return status.has_unviewed_changes


async def changed_fields(
    session: AsyncSession,
    care_log_id: UUID,
    user_id: UUID,
    *,
    resolution_seconds: int = 1,
) -> list[str]:
    status = await get_watermark_status(session, care_log_id, user_id, resolution_seconds=resolution_seconds)
    return status.changed_fields


async def mark_viewed(session: AsyncSession, care_log_id: UUID, user_id: UUID) -> CareLogView:
    """Create or advance the user's watermark for a log.

    A single ``INSERT ... ON CONFLICT DO UPDATE`` keeps the pair unique even
    when two first views race.
    """
    stmt = (
        insert(CareLogView)
        .values(care_log_id=care_log_id, user_id=user_id, viewed_at=func.now())
        .on_conflict_do_update(
            constraint="uq_care_log_views_log_user",
            set_={"viewed_at": func.now()},
        )
        .returning(CareLogView)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    view = result.scalar_one()
    logger.debug("Care log %s viewed by user %s at %s", care_log_id, user_id, view.viewed_at)
    return view
