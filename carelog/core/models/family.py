"""Family-side models: UserRole enum, User, CareRecipient, CareRecipientAccess, Caregiver."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carelog.core.database import Base

if TYPE_CHECKING:
    from carelog.core.models.care_log import CareLog


class UserRole(enum.StrEnum):
    """Family principal roles."""

    FAMILY_ADMIN = "family_admin"
    FAMILY_MEMBER = "family_member"


class User(Base):
    """A family principal (owner/admin or invited member)."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda e: [x.value for x in e]),
        default=UserRole.FAMILY_ADMIN,
        nullable=False,
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="Asia/Singapore")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    owned_care_recipients: Mapped[list[CareRecipient]] = relationship("CareRecipient", back_populates="family_admin")

    @property
    def is_active(self) -> bool:
        return self.active and self.deleted_at is None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class CareRecipient(Base):
    """The person receiving care; the aggregation root for access control."""

    __tablename__ = "care_recipients"
    __table_args__ = (Index("ix_care_recipients_family_admin_id", "family_admin_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_admin_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="Asia/Singapore")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    family_admin: Mapped[User] = relationship("User", back_populates="owned_care_recipients")
    access_grants: Mapped[list[CareRecipientAccess]] = relationship(
        "CareRecipientAccess", back_populates="care_recipient", cascade="all, delete-orphan"
    )
    caregivers: Mapped[list[Caregiver]] = relationship("Caregiver", back_populates="care_recipient")
    care_logs: Mapped[list[CareLog]] = relationship("CareLog", back_populates="care_recipient")

    def __repr__(self) -> str:
        return f"<CareRecipient(id={self.id}, name='{self.name}')>"


class CareRecipientAccess(Base):
    """An explicit, revocable read grant for a family member.

    Revocation is soft: ``revoked_at`` is set and the row is kept. A user has
    active access while at least one of their rows has ``revoked_at`` NULL.
    """

    __tablename__ = "care_recipient_access"
    __table_args__ = (
        Index("ix_care_recipient_access_recipient_user", "care_recipient_id", "user_id"),
        Index("ix_care_recipient_access_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    care_recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("care_recipients.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    granted_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    care_recipient: Mapped[CareRecipient] = relationship("CareRecipient", back_populates="access_grants")

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    def __repr__(self) -> str:
        return (
            f"<CareRecipientAccess(care_recipient_id={self.care_recipient_id}, "
            f"user_id={self.user_id}, revoked_at={self.revoked_at})>"
        )


class Caregiver(Base):
    """A PIN-authenticated helper assigned to one care recipient."""

    __tablename__ = "caregivers"
    __table_args__ = (Index("ix_caregivers_care_recipient_id", "care_recipient_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    care_recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("care_recipients.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    care_recipient: Mapped[CareRecipient] = relationship("CareRecipient", back_populates="caregivers")

    def __repr__(self) -> str:
        return f"<Caregiver(id={self.id}, name='{self.name}', active={self.active})>"
