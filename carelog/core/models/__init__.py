"""SQLAlchemy models for the care log engine.

This package re-exports all models and enums from domain-specific modules
so that callers can use ``from carelog.core.models import X``.
"""

from carelog.core.models.audit import AuditAction, CareLogAudit, CareLogView
from carelog.core.models.care_log import CareLog, CareLogStatus, SectionName
from carelog.core.models.family import Caregiver, CareRecipient, CareRecipientAccess, User, UserRole

__all__ = [
    "AuditAction",
    "CareLog",
    "CareLogAudit",
    "CareLogStatus",
    "CareLogView",
    "CareRecipient",
    "CareRecipientAccess",
    "Caregiver",
    "SectionName",
    "User",
    "UserRole",
]
