"""Pydantic schemas for care logs, audit history and access grants.

Domain-field request models are generated from the field registry in
``carelog.core.fields`` so that per-field constraints live in one place.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from carelog.core.fields import build_payload_model
from carelog.core.models import AuditAction, CareLogStatus, SectionName

# Create carries identity; update is the same domain fields, all optional.
CareLogCreate = build_payload_model(
    "CareLogCreate",
    extra_fields={
        "care_recipient_id": (UUID, ...),
        "log_date": (date, ...),
    },
)

CareLogUpdate = build_payload_model("CareLogUpdate")


class SubmitSectionRequest(BaseModel):
    """Schema for sharing one section with family."""

    section: SectionName


class InvalidateRequest(BaseModel):
    """Schema for re-opening a submitted log."""

    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reason must not be blank")
        return v.strip()


class CareLogRead(BaseModel):
    """A care log as seen by its caregiver or by family.

    Family projections omit unshared fields, so every domain field is
    optional and extra keys from the projection pass through untouched.
    """

    model_config = ConfigDict(extra="allow", from_attributes=True)

    id: UUID
    care_recipient_id: UUID
    caregiver_id: UUID | None = None
    log_date: date
    status: CareLogStatus
    submitted_at: datetime | None = None
    invalidated_at: datetime | None = None
    invalidated_by: UUID | None = None
    invalidation_reason: str | None = None
    completed_sections: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FamilyCareLogRead(CareLogRead):
    """Family view with the requester's unviewed-change summary."""

    has_unviewed_changes: bool = False
    changed_fields: list[str] = Field(default_factory=list)


class AuditEntryRead(BaseModel):
    """Schema for one audit history entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_log_id: UUID
    changed_by: UUID
    changed_by_name: str | None = None
    action: AuditAction
    section_submitted: str | None = None
    changes: dict[str, Any] | None = None
    created_at: datetime


class ViewRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    care_log_id: UUID
    user_id: UUID
    viewed_at: datetime


# -- Care recipient access ---------------------------------------------------


class AccessGrantCreate(BaseModel):
    """Schema for granting a family member read access."""

    user_id: UUID


class AccessGrantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    care_recipient_id: UUID
    user_id: UUID
    granted_by: UUID | None = None
    granted_at: datetime
    revoked_at: datetime | None = None


class CareRecipientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    family_admin_id: UUID
    name: str
    timezone: str
