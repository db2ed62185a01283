"""Data-driven description of every care log domain field.

A single table of ``FieldSpec`` entries is the source of truth for:

- request validation (``build_payload_model`` turns it into a pydantic model),
- which section owns a field and which fields are shared (visibility),
- the tracked-field list used for audit diffs,
- list-typed shared fields, which the family projection renders as empty
  containers before any section is submitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, create_model

from carelog.core.models.care_log import SectionName
from carelog.core.records import (
    HHMM_PATTERN,
    Activities,
    CaregiverNotes,
    ExerciseSession,
    FluidEntry,
    HospitalBagStatus,
    Meals,
    MedicationEntry,
    MovementDifficulty,
    NightSleep,
    OralCare,
    PersonalItemCheck,
    PhysicalActivity,
    RestPeriod,
    RoomMaintenance,
    SafetyCheck,
    SpecialConcerns,
    SpiritualEmotional,
    ToiletingRecord,
    UnaccompaniedPeriod,
)

MORNING = SectionName.MORNING
AFTERNOON = SectionName.AFTERNOON
EVENING = SectionName.EVENING
DAILY_SUMMARY = SectionName.DAILY_SUMMARY


@dataclass(frozen=True)
class FieldSpec:
    """Type and constraint description for one domain field.

    ``section`` is None for shared fields. ``choices`` restricts the value
    (or each list item when ``many`` is set) to a closed vocabulary.
    """

    name: str
    section: SectionName | None
    kind: Any = str
    choices: tuple[str, ...] = ()
    many: bool = False
    ge: float | None = None
    le: float | None = None
    pattern: str | None = None

    @property
    def shared(self) -> bool:
        return self.section is None

    def annotation(self) -> Any:
        item: Any = Literal[self.choices] if self.choices else self.kind
        if self.many:
            item = list[item]
        return item | None

    def field_info(self) -> Any:
        return Field(default=None, ge=self.ge, le=self.le, pattern=self.pattern)


CARE_LOG_FIELDS: tuple[FieldSpec, ...] = (
    # -- Morning -----------------------------------------------------------------
    FieldSpec("wake_time", MORNING, pattern=HHMM_PATTERN),
    FieldSpec("mood", MORNING, choices=("alert", "confused", "sleepy", "agitated", "calm")),
    FieldSpec("shower_time", MORNING, pattern=HHMM_PATTERN),
    FieldSpec("hair_wash", MORNING, bool),
    FieldSpec("blood_pressure", MORNING, pattern=r"^\d{2,3}/\d{2,3}$"),
    FieldSpec("pulse_rate", MORNING, int, ge=20, le=250),
    FieldSpec("oxygen_level", MORNING, int, ge=0, le=100),
    FieldSpec("blood_sugar", MORNING, float, ge=0, le=50),
    FieldSpec("vitals_time", MORNING, pattern=HHMM_PATTERN),
    FieldSpec("oral_care", MORNING, OralCare),
    FieldSpec("morning_exercise_session", MORNING, ExerciseSession),
    # -- Afternoon ---------------------------------------------------------------
    FieldSpec("afternoon_rest", AFTERNOON, RestPeriod),
    FieldSpec("afternoon_exercise_session", AFTERNOON, ExerciseSession),
    FieldSpec("physical_activity", AFTERNOON, PhysicalActivity),
    FieldSpec("activities", AFTERNOON, Activities),
    FieldSpec("movement_difficulties", AFTERNOON, dict[str, MovementDifficulty]),
    # -- Evening -----------------------------------------------------------------
    FieldSpec("night_sleep", EVENING, NightSleep),
    FieldSpec("spiritual_emotional", EVENING, SpiritualEmotional),
    # -- Daily summary -----------------------------------------------------------
    FieldSpec("bowel_movements", DAILY_SUMMARY, ToiletingRecord),
    FieldSpec("urination", DAILY_SUMMARY, ToiletingRecord),
    FieldSpec("balance_issues", DAILY_SUMMARY, int, ge=1, le=5),
    FieldSpec(
        "walking_pattern",
        DAILY_SUMMARY,
        choices=("normal", "shuffling", "uneven", "slow", "stumbling", "cannot_lift_feet"),
        many=True,
    ),
    FieldSpec("freezing_episodes", DAILY_SUMMARY, choices=("none", "mild", "severe")),
    FieldSpec("eye_movement_problems", DAILY_SUMMARY, bool),
    FieldSpec("speech_communication_scale", DAILY_SUMMARY, int, ge=1, le=5),
    FieldSpec("near_falls", DAILY_SUMMARY, choices=("none", "once_or_twice", "multiple")),
    FieldSpec("actual_falls", DAILY_SUMMARY, choices=("none", "minor", "major")),
    FieldSpec("unaccompanied_time", DAILY_SUMMARY, UnaccompaniedPeriod, many=True),
    FieldSpec("unaccompanied_incidents", DAILY_SUMMARY),
    FieldSpec("total_unaccompanied_minutes", DAILY_SUMMARY, int, ge=0, le=24 * 60),
    FieldSpec("safety_checks", DAILY_SUMMARY, dict[str, SafetyCheck]),
    FieldSpec("emergency_prep", DAILY_SUMMARY, dict[str, bool]),
    FieldSpec("room_maintenance", DAILY_SUMMARY, RoomMaintenance),
    FieldSpec("personal_items_check", DAILY_SUMMARY, dict[str, PersonalItemCheck]),
    FieldSpec("hospital_bag_status", DAILY_SUMMARY, HospitalBagStatus),
    FieldSpec("special_concerns", DAILY_SUMMARY, SpecialConcerns),
    FieldSpec("caregiver_notes", DAILY_SUMMARY, CaregiverNotes),
    FieldSpec("emergency_flag", DAILY_SUMMARY, bool),
    FieldSpec("emergency_note", DAILY_SUMMARY),
    FieldSpec("notes", DAILY_SUMMARY),
    # -- Shared ------------------------------------------------------------------
    FieldSpec("medications", None, MedicationEntry, many=True),
    FieldSpec("meals", None, Meals),
    FieldSpec("fluids", None, FluidEntry, many=True),
    FieldSpec("total_fluid_intake", None, int, ge=0, le=10000),
)

FIELDS_BY_NAME: dict[str, FieldSpec] = {spec.name: spec for spec in CARE_LOG_FIELDS}

SECTION_FIELDS: dict[SectionName, tuple[str, ...]] = {
    section: tuple(spec.name for spec in CARE_LOG_FIELDS if spec.section == section) for section in SectionName
}

SHARED_FIELDS: tuple[str, ...] = tuple(spec.name for spec in CARE_LOG_FIELDS if spec.shared)

# Shared list fields are rendered as [] before anything has been shared.
SHARED_LIST_FIELDS: tuple[str, ...] = tuple(spec.name for spec in CARE_LOG_FIELDS if spec.shared and spec.many)

TRACKED_FIELDS: tuple[str, ...] = tuple(spec.name for spec in CARE_LOG_FIELDS)


class _PayloadBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


def build_payload_model(
    model_name: str,
    *,
    extra_fields: dict[str, tuple[Any, Any]] | None = None,
) -> type[BaseModel]:
    """Build a pydantic model validating every domain field from the registry.

    All domain fields are optional. ``extra_fields`` adds non-domain fields
    (e.g. identity on create) in ``create_model`` ``(annotation, default)`` form.
    """
    definitions: dict[str, Any] = {spec.name: (spec.annotation(), spec.field_info()) for spec in CARE_LOG_FIELDS}
    if extra_fields:
        definitions.update(extra_fields)
    return create_model(model_name, __base__=_PayloadBase, **definitions)


def section_for_field(name: str) -> SectionName | None:
    """Return the owning section of a field, or None for shared fields.

    Raises:
        KeyError: If ``name`` is not a domain field.
    """
    return FIELDS_BY_NAME[name].section
