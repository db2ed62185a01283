"""Care recipient access routes: list accessible recipients, grant and revoke."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.api.deps import get_session
from carelog.api.schemas.care_log import AccessGrantCreate, AccessGrantRead, CareRecipientRead
from carelog.api.services.care_recipient_access import CareRecipientAccessService
from carelog.core.models import User
from carelog.core.permissions import require_family_admin, require_family_member

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/care-recipients", tags=["care-recipients"])


@router.get("", response_model=list[CareRecipientRead])
async def list_accessible_care_recipients(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_family_member),
) -> Any:
    """Recipients the caller owns (admin) or holds an active grant for (member)."""
    return await CareRecipientAccessService(session).list_accessible(user)


@router.post(
    "/{care_recipient_id}/access",
    response_model=AccessGrantRead,
    status_code=status.HTTP_201_CREATED,
)
async def grant_care_recipient_access(
    care_recipient_id: UUID,
    body: AccessGrantCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_family_admin),
) -> Any:
    grant = await CareRecipientAccessService(session).grant_access(user, care_recipient_id, body.user_id)
    await session.commit()
    return grant


@router.delete("/{care_recipient_id}/access/{user_id}", response_model=list[AccessGrantRead])
async def revoke_care_recipient_access(
    care_recipient_id: UUID,
    user_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_family_admin),
) -> Any:
    """Soft-revoke every active grant; takes effect on the next request."""
    grants = await CareRecipientAccessService(session).revoke_access(user, care_recipient_id, user_id)
    await session.commit()
    return grants
