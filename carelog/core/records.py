"""Typed sub-records stored as JSON on a care log.

Each JSON column of ``care_logs`` holds exactly one of these shapes; the
column name is the tag (see ``carelog.core.fields``). Models are only
used at the edges: request validation on the way in, and
``model_dump(mode="json")`` before the value reaches the storage layer.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

Assistance = Literal["none", "some", "full"]
AssistanceLevel = Literal["none", "minimal", "moderate", "full"]
SleepQuality = Literal["deep", "light", "restless", "no_sleep"]
MedicationTimeSlot = Literal["before_breakfast", "after_breakfast", "afternoon", "after_dinner", "before_bedtime"]
SwallowingIssue = Literal["none", "coughing", "choking", "slow"]


class SubRecord(BaseModel):
    """Base for all JSON sub-records."""

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Shared: medications, meals, fluids
# ---------------------------------------------------------------------------


class MedicationEntry(SubRecord):
    name: str = Field(min_length=1)
    given: bool
    time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    time_slot: MedicationTimeSlot


class MealRecord(SubRecord):
    time: str = Field(pattern=HHMM_PATTERN)
    appetite: int = Field(ge=1, le=5)
    amount_eaten: int = Field(ge=0, le=100)
    swallowing_issues: list[SwallowingIssue] = Field(default_factory=list)
    assistance: Assistance | None = None


class Meals(SubRecord):
    breakfast: MealRecord | None = None
    lunch: MealRecord | None = None
    tea_break: MealRecord | None = None
    dinner: MealRecord | None = None
    food_preferences: str | None = None
    food_refusals: str | None = None


class FluidEntry(SubRecord):
    name: str = Field(min_length=1)
    time: str = Field(pattern=HHMM_PATTERN)
    amount_ml: int = Field(ge=0, le=5000)
    swallowing_issues: list[SwallowingIssue] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Morning / afternoon
# ---------------------------------------------------------------------------


class OralCare(SubRecord):
    teeth_brushed: bool | None = None
    times_brushed: int | None = Field(default=None, ge=0, le=10)
    dentures_cleaned: bool | None = None
    mouth_rinsed: bool | None = None
    assistance_level: AssistanceLevel | None = None
    oral_health_issues: list[str] = Field(default_factory=list)
    pain_or_bleeding: bool | None = None
    notes: str | None = None


class ExerciseItem(SubRecord):
    type: str
    done: bool
    duration: int = Field(ge=0)
    participation: int = Field(ge=1, le=5)


class ExerciseSession(SubRecord):
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    exercises: list[ExerciseItem] = Field(default_factory=list)
    notes: str | None = None


class RestPeriod(SubRecord):
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    quality: SleepQuality
    notes: str | None = None


class PhysicalActivity(SubRecord):
    exercise_duration: int | None = Field(default=None, ge=0)
    exercise_type: list[str] = Field(default_factory=list)
    walking_distance: str | None = None
    assistance_level: AssistanceLevel | None = None
    pain_during_activity: Literal["none", "mild", "moderate", "severe"] | None = None
    energy_after_activity: Literal["energized", "tired", "exhausted", "same"] | None = None
    participation_willingness: Literal["enthusiastic", "willing", "reluctant", "refused"] | None = None
    equipment_used: list[str] = Field(default_factory=list)
    mobility_notes: str | None = None


class RelaxationPeriod(SubRecord):
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    activity: Literal["resting", "sleeping", "watching_tv", "listening_music", "quiet_time"]
    mood: Literal["happy", "calm", "restless", "bored", "engaged"]


class Activities(SubRecord):
    phone_activities: list[Literal["youtube", "texting", "calls", "none"]] = Field(default_factory=list)
    engagement_level: int | None = Field(default=None, ge=1, le=5)
    other_activities: list[
        Literal["phone", "conversation", "prayer", "reading", "watching_tv", "listening_music", "games", "none"]
    ] = Field(default_factory=list)
    relaxation_periods: list[RelaxationPeriod] = Field(default_factory=list)


class MovementDifficulty(SubRecord):
    level: str
    notes: str | None = None


# ---------------------------------------------------------------------------
# Evening
# ---------------------------------------------------------------------------


class NightSleep(SubRecord):
    bedtime: str = Field(pattern=HHMM_PATTERN)
    quality: SleepQuality
    wakings: int = Field(default=0, ge=0)
    waking_reasons: list[Literal["toilet", "pain", "confusion", "dreams", "unknown"]] = Field(default_factory=list)
    behaviors: list[
        Literal["quiet", "snoring", "talking", "mumbling", "restless", "dreaming", "nightmares"]
    ] = Field(default_factory=list)
    notes: str | None = None


class PrayerTime(SubRecord):
    start: str = Field(pattern=HHMM_PATTERN)
    end: str = Field(pattern=HHMM_PATTERN)


class SpiritualEmotional(SubRecord):
    prayer_time: PrayerTime | None = None
    prayer_expression: Literal["speaking_out_loud", "whispering", "mumbling", "silent_worship"] | None = None
    overall_mood: int | None = Field(default=None, ge=1, le=5)
    communication_scale: int | None = Field(default=None, ge=1, le=5)
    social_interaction: Literal["engaged", "responsive", "withdrawn", "aggressive_hostile"] | None = None


# ---------------------------------------------------------------------------
# Daily summary
# ---------------------------------------------------------------------------


class ToiletingRecord(SubRecord):
    """Shape shared by bowel movements and urination."""

    frequency: int = Field(ge=0)
    times_used_toilet: int | None = Field(default=None, ge=0)
    diaper_changes: int | None = Field(default=None, ge=0)
    diaper_status: Literal["dry", "wet", "soiled"] | None = None
    accidents: Literal["none", "minor", "major"] | None = None
    assistance: Literal["none", "partial", "full"] | None = None
    pain: Literal["no_pain", "some_pain", "very_painful"] | None = None
    consistency: Literal["normal", "hard", "soft", "loose", "diarrhea"] | None = None
    urine_color: Literal["light_clear", "yellow", "dark_yellow", "brown", "dark"] | None = None
    concerns: str | None = None


class UnaccompaniedPeriod(SubRecord):
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    reason: str
    replacement_person: str | None = None
    duration: int = Field(ge=0)
    incidents: str | None = None


class SafetyCheck(SubRecord):
    checked: bool
    action: str | None = None


class RoomMaintenance(SubRecord):
    cleaning_status: Literal["completed_by_maid", "caregiver_assisted", "not_done"] | None = None
    room_comfort: Literal["good_temperature", "too_hot", "too_cold"] | None = None


class PersonalItemCheck(SubRecord):
    checked: bool
    status: str | None = None
    notes: str | None = None


class HospitalBagStatus(SubRecord):
    bag_ready: bool | None = None
    location: str | None = None
    last_checked: bool | None = None
    notes: str | None = None


class SpecialConcerns(SubRecord):
    priority_level: Literal["emergency", "urgent", "routine"] | None = None
    behavioural_changes: list[str] = Field(default_factory=list)
    physical_changes: str | None = None
    incident_description: str | None = None
    actions_taken: str | None = None
    notes: str | None = None


class CaregiverNotes(SubRecord):
    what_went_well: str | None = None
    challenges_faced: str | None = None
    recommendations_for_tomorrow: str | None = None
    important_info_for_family: str | None = None
    caregiver_signature: str | None = None
