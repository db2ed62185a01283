"""Care log routes.

Caregiver endpoints author and transition a log; family endpoints read
the filtered projection, history and unviewed-change summary. All domain
failures surface as ``CareLogError`` and are rendered by the app-level
handler.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.api.deps import get_session
from carelog.api.schemas.care_log import (
    AuditEntryRead,
    CareLogCreate,
    CareLogRead,
    CareLogUpdate,
    FamilyCareLogRead,
    InvalidateRequest,
    SubmitSectionRequest,
    ViewRecordRead,
)
from carelog.api.services.care_log import CareLogService
from carelog.core.auth import get_current_caregiver
from carelog.core.config import Settings, get_settings
from carelog.core.models import Caregiver, User
from carelog.core.permissions import require_family_admin, require_family_member

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/care-logs", tags=["care-logs"])


# -- Caregiver ---------------------------------------------------------------


@router.post("", response_model=CareLogRead, status_code=status.HTTP_201_CREATED)
async def create_care_log(
    body: CareLogCreate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    caregiver: Caregiver = Depends(get_current_caregiver),
) -> dict[str, Any]:
    """Start today's log as a draft."""
    log = await CareLogService(session, settings).create_log(caregiver, body)
    await session.commit()
    return log.as_dict()


@router.get("/caregiver/today", response_model=CareLogRead | None)
async def get_caregiver_today_log(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    caregiver: Caregiver = Depends(get_current_caregiver),
) -> dict[str, Any] | None:
    """The caregiver's own unfiltered log for today, so the form can resume."""
    log = await CareLogService(session, settings).get_caregiver_today_log(caregiver)
    return log.as_dict() if log else None


@router.patch("/{care_log_id}", response_model=CareLogRead)
async def update_care_log(
    care_log_id: UUID,
    body: CareLogUpdate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    caregiver: Caregiver = Depends(get_current_caregiver),
) -> dict[str, Any]:
    log = await CareLogService(session, settings).update_log(caregiver, care_log_id, body)
    await session.commit()
    return log.as_dict()


@router.post("/{care_log_id}/submit-section", response_model=CareLogRead)
async def submit_care_log_section(
    care_log_id: UUID,
    body: SubmitSectionRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    caregiver: Caregiver = Depends(get_current_caregiver),
) -> dict[str, Any]:
    """Share one section with family without finalizing the log."""
    log = await CareLogService(session, settings).submit_section(caregiver, care_log_id, body.section)
    await session.commit()
    return log.as_dict()


@router.post("/{care_log_id}/submit", response_model=CareLogRead)
async def submit_care_log(
    care_log_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    caregiver: Caregiver = Depends(get_current_caregiver),
) -> dict[str, Any]:
    log = await CareLogService(session, settings).submit_log(caregiver, care_log_id)
    await session.commit()
    return log.as_dict()


# -- Family ------------------------------------------------------------------


@router.get("/recipient/{care_recipient_id}", response_model=list[CareLogRead])
async def list_care_logs_for_recipient(
    care_recipient_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_family_member),
) -> list[dict[str, Any]]:
    """Submitted logs and partially shared drafts, newest first, filtered."""
    return await CareLogService(session, settings).get_logs_for_recipient(user, care_recipient_id)


@router.get("/recipient/{care_recipient_id}/today", response_model=FamilyCareLogRead | None)
async def get_today_care_log(
    care_recipient_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_family_member),
) -> dict[str, Any] | None:
    return await CareLogService(session, settings).get_today_log(user, care_recipient_id)


@router.get("/recipient/{care_recipient_id}/date/{log_date}", response_model=FamilyCareLogRead | None)
async def get_care_log_for_date(
    care_recipient_id: UUID,
    log_date: date,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_family_member),
) -> dict[str, Any] | None:
    return await CareLogService(session, settings).get_log_for_date(user, care_recipient_id, log_date)


@router.get("/{care_log_id}", response_model=FamilyCareLogRead)
async def get_care_log(
    care_log_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_family_member),
) -> dict[str, Any]:
    return await CareLogService(session, settings).get_family_log(user, care_log_id)


@router.get("/{care_log_id}/history", response_model=list[AuditEntryRead])
async def get_care_log_history(
    care_log_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_family_member),
) -> list[dict[str, Any]]:
    """Audit trail, most recent first."""
    return await CareLogService(session, settings).get_history(user, care_log_id)


@router.post("/{care_log_id}/view", response_model=ViewRecordRead)
async def mark_care_log_viewed(
    care_log_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_family_member),
) -> Any:
    """Advance the caller's watermark for this log."""
    view = await CareLogService(session, settings).mark_viewed(user, care_log_id)
    await session.commit()
    return view


@router.post("/{care_log_id}/invalidate", response_model=CareLogRead)
async def invalidate_care_log(
    care_log_id: UUID,
    body: InvalidateRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_family_admin),
) -> dict[str, Any]:
    """Re-open a submitted log for caregiver edits."""
    log = await CareLogService(session, settings).invalidate_log(user, care_log_id, body.reason)
    await session.commit()
    logger.info("Care log %s re-opened by family admin %s", care_log_id, user.id)
    return log.as_dict()
