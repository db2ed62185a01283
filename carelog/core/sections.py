"""Section completion tracking and the family-visible projection of a care log.

A caregiver shares a log progressively: each submitted section exposes its
own fields plus the shared ones, while unsubmitted sections stay hidden
even if already filled in. Final submission exposes everything.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from carelog.core.fields import SECTION_FIELDS, SHARED_FIELDS, SHARED_LIST_FIELDS
from carelog.core.models import CareLogStatus, SectionName

# Identity and lifecycle columns, always visible to family.
METADATA_FIELDS: tuple[str, ...] = (
    "id",
    "care_recipient_id",
    "caregiver_id",
    "log_date",
    "status",
    "submitted_at",
    "invalidated_at",
    "invalidated_by",
    "invalidation_reason",
    "completed_sections",
    "created_at",
    "updated_at",
)


def has_completed_sections(completed_sections: Mapping[str, Any] | None) -> bool:
    return bool(completed_sections)


def is_visible_to_family(log: Mapping[str, Any]) -> bool:
    """A log reaches family once submitted or once any section is shared."""
    return log.get("status") == CareLogStatus.SUBMITTED or has_completed_sections(log.get("completed_sections"))


def merge_completed_section(
    completed_sections: Mapping[str, Any] | None,
    section: SectionName,
    submitted_by: UUID,
    submitted_at: datetime,
) -> dict[str, Any]:
    """Return a new map with ``section`` upserted and all other entries kept.

    Re-submitting a section keeps the same key and advances ``submitted_at``.
    """
    merged = dict(completed_sections or {})
    merged[section.value] = {
        "submitted_at": submitted_at.isoformat(),
        "submitted_by": str(submitted_by),
    }
    return merged


def filter_by_completed_sections(
    log: Mapping[str, Any],
    completed_sections: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Reduce a care log to the fields family may see.

    Args:
        log: Unfiltered column values (see ``CareLog.as_dict``).
        completed_sections: Section name to completion entry.

    Returns:
        The whole record when submitted; otherwise metadata, shared fields
        and the fields of completed sections. With no completed section only
        metadata is returned, with shared list fields as empty lists.
    """
    if log.get("status") == CareLogStatus.SUBMITTED:
        return dict(log)

    visible = {name: log[name] for name in METADATA_FIELDS if name in log}

    if not has_completed_sections(completed_sections):
        for name in SHARED_LIST_FIELDS:
            visible[name] = []
        return visible

    for name in SHARED_FIELDS:
        visible[name] = log.get(name)
    for section in SectionName:
        if section.value in completed_sections:
            for name in SECTION_FIELDS[section]:
                visible[name] = log.get(name)
    return visible
