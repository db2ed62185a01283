"""Family member access grants for a care recipient.

Only the recipient's owning family admin may grant or revoke. Revocation
is soft: rows keep their history and simply gain ``revoked_at``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.errors import ForbiddenError, NotFoundError
from carelog.core.models import CareRecipient, CareRecipientAccess, User
from carelog.core.rls import can_manage_caregivers, get_accessible_care_recipients

logger = logging.getLogger(__name__)


class CareRecipientAccessService:
    """Grants, revokes and lists family access to care recipients."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _require_owner(self, admin: User, care_recipient_id: uuid.UUID) -> None:
        if not await can_manage_caregivers(self._session, admin.id, care_recipient_id):
            logger.warning("User %s denied access management on care recipient %s", admin.id, care_recipient_id)
            raise ForbiddenError("Only the care recipient's family admin can manage access")

    async def _active_grants(self, care_recipient_id: uuid.UUID, user_id: uuid.UUID) -> list[CareRecipientAccess]:
        result = await self._session.execute(
            select(CareRecipientAccess)
            .where(
                CareRecipientAccess.care_recipient_id == care_recipient_id,
                CareRecipientAccess.user_id == user_id,
                CareRecipientAccess.revoked_at.is_(None),
            )
            .with_for_update()
        )
        return list(result.scalars().all())

    async def grant_access(
        self, admin: User, care_recipient_id: uuid.UUID, user_id: uuid.UUID
    ) -> CareRecipientAccess:
        """Grant a user read access.

        Returns the existing grant unchanged if one is already active.
        """
        await self._require_owner(admin, care_recipient_id)

        result = await self._session.execute(select(User).where(User.id == user_id))
        grantee = result.scalar_one_or_none()
        if grantee is None or not grantee.is_active:
            raise NotFoundError(f"User {user_id} not found")

        existing = await self._active_grants(care_recipient_id, user_id)
        if existing:
            return existing[0]

        grant = CareRecipientAccess(
            care_recipient_id=care_recipient_id,
            user_id=user_id,
            granted_by=admin.id,
            granted_at=datetime.now(UTC),
        )
        self._session.add(grant)
        await self._session.flush()

        logger.info("User %s granted access to care recipient %s by %s", user_id, care_recipient_id, admin.id)
        return grant

    async def revoke_access(
        self, admin: User, care_recipient_id: uuid.UUID, user_id: uuid.UUID
    ) -> list[CareRecipientAccess]:
        """Revoke every active grant the user holds on the recipient.

        Raises:
            NotFoundError: If the user has no active grant.
        """
        await self._require_owner(admin, care_recipient_id)

        grants = await self._active_grants(care_recipient_id, user_id)
        if not grants:
            raise NotFoundError(f"User {user_id} has no active access to care recipient {care_recipient_id}")

        now = datetime.now(UTC)
        for grant in grants:
            grant.revoked_at = now
        await self._session.flush()

        logger.info("User %s access to care recipient %s revoked by %s", user_id, care_recipient_id, admin.id)
        return grants

    async def list_accessible(self, user: User) -> list[CareRecipient]:
        return await get_accessible_care_recipients(self._session, user.id)
