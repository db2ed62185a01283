"""Audit models: AuditAction enum, CareLogAudit, CareLogView."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carelog.core.database import Base

if TYPE_CHECKING:
    from carelog.core.models.care_log import CareLog


class AuditAction(enum.StrEnum):
    """Mutations recorded against a care log."""

    CREATE = "create"
    UPDATE = "update"
    SUBMIT = "submit"
    SUBMIT_SECTION = "submit_section"


class CareLogAudit(Base):
    """Append-only change record for a care log.

    Rows are never updated or deleted by the application. ``changes`` holds
    ``{field: {"old": ..., "new": ...}}`` for updates; ``snapshot`` holds the
    full post-mutation state.
    """

    __tablename__ = "care_log_audit"
    __table_args__ = (
        Index("ix_care_log_audit_care_log_id", "care_log_id"),
        Index("ix_care_log_audit_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    care_log_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("care_logs.id", ondelete="CASCADE"), nullable=False
    )
    changed_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    changed_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, values_callable=lambda e: [x.value for x in e]), nullable=False
    )
    section_submitted: Mapped[str | None] = mapped_column(String(32), nullable=True)
    changes: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    care_log: Mapped[CareLog] = relationship("CareLog", back_populates="audit_entries")

    def __repr__(self) -> str:
        return f"<CareLogAudit(id={self.id}, action={self.action}, care_log_id={self.care_log_id})>"


class CareLogView(Base):
    """Per-user "last viewed" watermark for a care log.

    At most one row per (care_log_id, user_id); ``viewed_at`` is overwritten
    on every view.
    """

    __tablename__ = "care_log_views"
    __table_args__ = (
        UniqueConstraint("care_log_id", "user_id", name="uq_care_log_views_log_user"),
        Index("ix_care_log_views_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    care_log_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("care_logs.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    viewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    care_log: Mapped[CareLog] = relationship("CareLog", back_populates="views")

    def __repr__(self) -> str:
        return f"<CareLogView(care_log_id={self.care_log_id}, user_id={self.user_id}, viewed_at={self.viewed_at})>"
