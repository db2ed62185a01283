"""Append-only audit trail for care log mutations.

Provides:
- Field-level diffs between the pre- and post-mutation state
- Full JSON snapshots of a care log
- A best-effort writer that never lets an audit failure reach the caller
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.models import AuditAction, CareLog, CareLogAudit
from carelog.core.serialization import to_jsonable

logger = logging.getLogger(__name__)


def _canonical(value: Any) -> str:
    return json.dumps(to_jsonable(value), sort_keys=True)


def compute_changes(
    old: Mapping[str, Any],
    new: Mapping[str, Any],
    tracked_fields: Iterable[str],
) -> dict[str, dict[str, Any]]:
    """Diff two states over a fixed list of fields.

    A field absent from ``new`` is skipped: partial updates do not turn
    omitted fields into changes. An explicit ``None`` in ``new`` counts.
    Nested objects and lists are compared by full value after canonical
    JSON serialization, so key order does not matter.

    Returns:
        ``{field: {"old": ..., "new": ...}}`` for every field that differs.
    """
    changes: dict[str, dict[str, Any]] = {}
    for field in tracked_fields:
        if field not in new:
            continue
        old_value = old.get(field)
        new_value = new[field]
        if _canonical(old_value) != _canonical(new_value):
            changes[field] = {"old": to_jsonable(old_value), "new": to_jsonable(new_value)}
    return changes


def care_log_snapshot(care_log: CareLog) -> dict[str, Any]:
    """Full JSON-compatible state of a care log."""
    return to_jsonable(care_log.as_dict())


async def record_care_log_audit(
    session: AsyncSession,
    *,
    care_log_id: UUID,
    changed_by: UUID,
    changed_by_name: str | None,
    action: AuditAction,
    section_submitted: str | None = None,
    changes: dict[str, Any] | None = None,
    snapshot: dict[str, Any] | None = None,
) -> CareLogAudit | None:
    """Append an audit entry inside a savepoint.

    Best-effort: any failure is logged and swallowed, and the savepoint
    rollback leaves the caller's pending mutation intact.

    Returns:
        The flushed entry, or None if it could not be written.
    """
    entry = CareLogAudit(
        care_log_id=care_log_id,
        changed_by=changed_by,
        changed_by_name=changed_by_name,
        action=action,
        section_submitted=section_submitted,
        changes=changes,
        snapshot=snapshot,
    )
    try:
        async with session.begin_nested():
            session.add(entry)
            await session.flush()
    except Exception:
        logger.exception("Failed to record %s audit entry for care log %s", action.value, care_log_id)
        return None
    return entry
