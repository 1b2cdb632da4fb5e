"""
Activity Calendar Schemas
=========================
Pydantic models for the monthly activity calendar.

Attribute names are snake_case; the JSON contract the mobile app reads is
camelCase, produced through field aliases. FastAPI serialises
response models by alias, so routes return the camelCase shape.

CalendarActivity is a closed union discriminated on ``type``. The
aggregator only reads ``type`` and ``completed_at``; the per-type summary
payloads are passed through as built by the source readers.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Per-type activity summaries
# ---------------------------------------------------------------------------

class WorkoutActivitySummary(BaseModel):
    """Lifting workout details shown on a calendar day."""

    model_config = ConfigDict(populate_by_name=True)

    day_name: str = Field(alias="dayName")
    exercise_count: int = Field(ge=0, alias="exerciseCount")
    sets_completed: int = Field(ge=0, alias="setsCompleted")
    total_sets: int = Field(ge=0, alias="totalSets")
    week_number: int = Field(alias="weekNumber")
    is_deload: bool = Field(alias="isDeload")


class StretchActivitySummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_duration_seconds: int = Field(ge=0, alias="totalDurationSeconds")
    regions_completed: int = Field(ge=0, alias="regionsCompleted")
    regions_skipped: int = Field(ge=0, alias="regionsSkipped")


class MeditationActivitySummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    duration_seconds: int = Field(ge=0, alias="durationSeconds")
    meditation_type: str = Field(alias="meditationType")


# ---------------------------------------------------------------------------
# Activities (discriminated on ``type``)
# ---------------------------------------------------------------------------

class WorkoutActivity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Literal["workout"] = "workout"
    date: date
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    summary: WorkoutActivitySummary


class StretchActivity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Literal["stretch"] = "stretch"
    date: date
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    summary: StretchActivitySummary


class MeditationActivity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Literal["meditation"] = "meditation"
    date: date
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    summary: MeditationActivitySummary


CalendarActivity = Annotated[
    Union[WorkoutActivity, StretchActivity, MeditationActivity],
    Field(discriminator="type"),
]

ACTIVITY_MODELS: dict[str, type[BaseModel]] = {
    "workout": WorkoutActivity,
    "stretch": StretchActivity,
    "meditation": MeditationActivity,
}


# ---------------------------------------------------------------------------
# Day + month
# ---------------------------------------------------------------------------

class DaySummary(BaseModel):
    """Counts and presence flags for one local day."""

    model_config = ConfigDict(populate_by_name=True)

    total_activities: int = Field(ge=0, alias="totalActivities")
    completed_activities: int = Field(ge=0, alias="completedActivities")
    has_workout: bool = Field(alias="hasWorkout")
    has_stretch: bool = Field(alias="hasStretch")
    has_meditation: bool = Field(alias="hasMeditation")


class CalendarDayData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: date
    activities: list[CalendarActivity]
    summary: DaySummary


class CalendarDataResponse(BaseModel):
    """Full month payload returned to the mobile app.

    ``days`` is sparse: a local date with no activity has no key.
    """

    model_config = ConfigDict(populate_by_name=True)

    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    days: dict[str, CalendarDayData]
