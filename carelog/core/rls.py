"""Row-level access predicates for care recipient data.

Every predicate is a single read against current state with no caching:
a revoked grant or a deactivated caregiver must stop working on the very
next request.

Access Model:
    family admin   owns a care recipient (care_recipients.family_admin_id)
    family member  holds a non-revoked row in care_recipient_access
    caregiver      is active and assigned (caregivers.care_recipient_id)
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.models import Caregiver, CareLog, CareRecipient, CareRecipientAccess, User, UserRole

logger = logging.getLogger(__name__)


async def _scalar_bool(session: AsyncSession, stmt) -> bool:
    result = await session.execute(stmt)
    return bool(result.scalar())


async def can_access_care_recipient(session: AsyncSession, user_id: UUID, care_recipient_id: UUID) -> bool:
    """True if the user owns the recipient or holds an active access grant."""
    owns = exists().where(
        CareRecipient.id == care_recipient_id,
        CareRecipient.family_admin_id == user_id,
    )
    granted = exists().where(
        CareRecipientAccess.care_recipient_id == care_recipient_id,
        CareRecipientAccess.user_id == user_id,
        CareRecipientAccess.revoked_at.is_(None),
    )
    allowed = await _scalar_bool(session, select(or_(owns, granted)))
    if not allowed:
        logger.warning("User %s denied access to care recipient %s", user_id, care_recipient_id)
    return allowed


async def can_manage_caregivers(session: AsyncSession, user_id: UUID, care_recipient_id: UUID) -> bool:
    """True only for a family admin who owns the recipient.

    Access grants never confer management rights. Granting and revoking
    member access is gated by this predicate too.
    """
    stmt = select(
        exists().where(
            CareRecipient.id == care_recipient_id,
            CareRecipient.family_admin_id == user_id,
            User.id == CareRecipient.family_admin_id,
            User.role == UserRole.FAMILY_ADMIN,
        )
    )
    return await _scalar_bool(session, stmt)


async def can_invalidate_care_log(session: AsyncSession, user_id: UUID, care_log_id: UUID) -> bool:
    """True if the user is the admin owner of the log's care recipient."""
    stmt = select(
        exists().where(
            CareLog.id == care_log_id,
            CareRecipient.id == CareLog.care_recipient_id,
            CareRecipient.family_admin_id == user_id,
            User.id == CareRecipient.family_admin_id,
            User.role == UserRole.FAMILY_ADMIN,
        )
    )
    return await _scalar_bool(session, stmt)


async def caregiver_owns_care_log(session: AsyncSession, caregiver_id: UUID, care_log_id: UUID) -> bool:
    """True iff the log was authored by this caregiver.

    A caregiver assigned to the same recipient still cannot touch another
    caregiver's log.
    """
    result = await session.execute(select(CareLog.caregiver_id).where(CareLog.id == care_log_id))
    owner_id = result.scalar_one_or_none()
    return owner_id is not None and owner_id == caregiver_id


async def caregiver_has_access(session: AsyncSession, caregiver_id: UUID, care_recipient_id: UUID) -> bool:
    """True iff the caregiver is active and assigned to the recipient."""
    stmt = select(
        exists().where(
            Caregiver.id == caregiver_id,
            Caregiver.care_recipient_id == care_recipient_id,
            Caregiver.active.is_(True),
        )
    )
    allowed = await _scalar_bool(session, stmt)
    if not allowed:
        logger.warning("Caregiver %s is not assigned to care recipient %s", caregiver_id, care_recipient_id)
    return allowed


async def get_accessible_care_recipients(session: AsyncSession, user_id: UUID) -> list[CareRecipient]:
    """Return the recipients a family principal may read.

    Admins see the recipients they own, members see those with an active
    grant, anyone else sees nothing.
    """
    role_result = await session.execute(select(User.role).where(User.id == user_id))
    role = role_result.scalar_one_or_none()

    if role == UserRole.FAMILY_ADMIN:
        stmt = select(CareRecipient).where(CareRecipient.family_admin_id == user_id).order_by(CareRecipient.name)
    elif role == UserRole.FAMILY_MEMBER:
        stmt = (
            select(CareRecipient)
            .join(CareRecipientAccess, CareRecipientAccess.care_recipient_id == CareRecipient.id)
            .where(
                CareRecipientAccess.user_id == user_id,
                CareRecipientAccess.revoked_at.is_(None),
            )
            .distinct()
            .order_by(CareRecipient.name)
        )
    else:
        return []

    result = await session.execute(stmt)
    return list(result.scalars().all())
