"""Care log models: CareLogStatus and SectionName enums, CareLog."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Date, DateTime, Enum, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carelog.core.database import Base
from carelog.core.serialization import JSONRecord

if TYPE_CHECKING:
    from carelog.core.models.audit import CareLogAudit, CareLogView
    from carelog.core.models.family import CareRecipient


class CareLogStatus(enum.StrEnum):
    """Lifecycle states of a daily care log.

    ``submitted`` is terminal unless an admin invalidates the log, which
    moves it back to ``draft``.
    """

    DRAFT = "draft"
    SUBMITTED = "submitted"


class SectionName(enum.StrEnum):
    """Fixed field groupings used for progressive disclosure to family."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    DAILY_SUMMARY = "daily_summary"


class CareLog(Base):
    """One daily caregiving report for a care recipient.

    ``completed_sections`` maps a section name to
    ``{"submitted_at": iso8601, "submitted_by": caregiver_id}`` and may be
    populated while the log is still a draft.
    """

    __tablename__ = "care_logs"
    __table_args__ = (
        Index("ix_care_logs_care_recipient_id_log_date", "care_recipient_id", "log_date"),
        Index("ix_care_logs_caregiver_id", "caregiver_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    care_recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("care_recipients.id", ondelete="CASCADE"), nullable=False
    )
    caregiver_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("caregivers.id", ondelete="SET NULL"), nullable=True
    )
    log_date: Mapped[date] = mapped_column(Date, nullable=False)

    # -- Lifecycle ---------------------------------------------------------------
    status: Mapped[CareLogStatus] = mapped_column(
        Enum(CareLogStatus, values_callable=lambda e: [x.value for x in e]),
        default=CareLogStatus.DRAFT,
        nullable=False,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invalidated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invalidated_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    invalidation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_sections: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)

    # -- Morning -----------------------------------------------------------------
    wake_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    mood: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shower_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    hair_wash: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    blood_pressure: Mapped[str | None] = mapped_column(String(10), nullable=True)
    pulse_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    oxygen_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    blood_sugar: Mapped[float | None] = mapped_column(Float, nullable=True)
    vitals_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    oral_care: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    morning_exercise_session: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)

    # -- Afternoon ---------------------------------------------------------------
    afternoon_rest: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    afternoon_exercise_session: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    physical_activity: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    activities: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    movement_difficulties: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)

    # -- Evening -----------------------------------------------------------------
    night_sleep: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    spiritual_emotional: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)

    # -- Daily summary -----------------------------------------------------------
    bowel_movements: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    urination: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    balance_issues: Mapped[int | None] = mapped_column(Integer, nullable=True)
    walking_pattern: Mapped[list[str] | None] = mapped_column(JSONRecord, nullable=True)
    freezing_episodes: Mapped[str | None] = mapped_column(String(20), nullable=True)
    eye_movement_problems: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    speech_communication_scale: Mapped[int | None] = mapped_column(Integer, nullable=True)
    near_falls: Mapped[str | None] = mapped_column(String(20), nullable=True)
    actual_falls: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unaccompanied_time: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONRecord, nullable=True)
    unaccompanied_incidents: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_unaccompanied_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    safety_checks: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    emergency_prep: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    room_maintenance: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    personal_items_check: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    hospital_bag_status: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    special_concerns: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    caregiver_notes: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    emergency_flag: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    emergency_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # -- Shared (visible once any section is submitted) --------------------------
    medications: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONRecord, nullable=True)
    meals: Mapped[dict[str, Any] | None] = mapped_column(JSONRecord, nullable=True)
    fluids: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONRecord, nullable=True)
    total_fluid_intake: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    care_recipient: Mapped[CareRecipient] = relationship("CareRecipient", back_populates="care_logs")
    audit_entries: Mapped[list[CareLogAudit]] = relationship(
        "CareLogAudit", back_populates="care_log", cascade="all, delete-orphan", passive_deletes=True
    )
    views: Mapped[list[CareLogView]] = relationship(
        "CareLogView", back_populates="care_log", cascade="all, delete-orphan", passive_deletes=True
    )

    def as_dict(self) -> dict[str, Any]:
        """Column values keyed by attribute name, unfiltered."""
        return {column.key: getattr(self, column.key) for column in self.__table__.columns}

    def __repr__(self) -> str:
        return f"<CareLog(id={self.id}, log_date={self.log_date}, status={self.status})>"
