"""
Calendar Service
================
Builds the monthly activity calendar: workouts, stretch sessions and
meditation sessions merged into one sparse per-day view.

Pipeline for ``get_month_data``:
    1. Resolve and validate the local month window (no I/O on bad input).
    2. Fetch all three activity sources concurrently over a UTC range
       widened by 24 hours on each side of the local month.
    3. Bucket every record into its local date; drop dates outside the month.
    4. Group by date, order each day chronologically, compute day summaries.

Timezone offsets are minutes *ahead* of UTC: ``540`` is Japan, ``-480`` is
US Pacific. The local time of an instant is ``utc + offset``.

A failing source fails the whole month. Returning a calendar with one
activity type silently missing would show false rest days.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Union

from pydantic import TypeAdapter

from app.db.supabase import get_supabase_client
from app.models.calendar import (
    ACTIVITY_MODELS,
    CalendarActivity,
    CalendarDataResponse,
    CalendarDayData,
    DaySummary,
)
from app.services.activity_sources import (
    ActivityRecord,
    ActivitySource,
    MeditationSource,
    StretchSource,
    WorkoutSource,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_YEAR, MAX_YEAR = 1000, 9999
MIN_OFFSET_MINUTES, MAX_OFFSET_MINUTES = -720, 840  # UTC-12:00 .. UTC+14:00
FETCH_PADDING = timedelta(hours=24)

_UNTIMED = datetime.min.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class CalendarValidationError(ValueError):
    """Caller input outside the calendar contract."""

    code = "validation_error"
    message = "Invalid calendar request"

    def __init__(self, value: object = None) -> None:
        self.value = value
        super().__init__(self.message)


class InvalidYear(CalendarValidationError):
    code = "invalid_year"
    message = "Invalid year parameter: must be a valid 4-digit year (1000-9999)"


class InvalidMonth(CalendarValidationError):
    code = "invalid_month"
    message = "Invalid month parameter: must be a number between 1 and 12"


class InvalidTimezoneOffset(CalendarValidationError):
    code = "invalid_timezone_offset"
    message = "Invalid timezone offset: must be a number between -720 and 840"


class SourceUnavailable(Exception):
    """An activity source could not be read."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"Activity source unavailable: {source}")


# ---------------------------------------------------------------------------
# Month window
# ---------------------------------------------------------------------------

def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class MonthWindow:
    start_date: date
    end_date: date
    timezone_offset_minutes: int

    def contains(self, local_date: date) -> bool:
        return self.start_date <= local_date <= self.end_date

    def utc_fetch_range(self) -> tuple[datetime, datetime]:
        """Half-open UTC range wide enough for any offset's local month."""
        start = datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)
        end = datetime.combine(self.end_date, time.min, tzinfo=timezone.utc)
        return _shift(start, -FETCH_PADDING), _shift(end, timedelta(days=1) + FETCH_PADDING)


def _shift(moment: datetime, delta: timedelta) -> datetime:
    """``moment + delta`` clamped to the representable range (year 9999 ends)."""
    try:
        return moment + delta
    except OverflowError:
        limit = datetime.max if delta > timedelta(0) else datetime.min
        return limit.replace(tzinfo=timezone.utc)


def resolve_month_window(year: int, month: int, timezone_offset_minutes: int = 0) -> MonthWindow:
    """Validate the request and return the inclusive local dates of the month."""
    if not _is_int(year) or not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidYear(year)
    if not _is_int(month) or not 1 <= month <= 12:
        raise InvalidMonth(month)
    if not _is_int(timezone_offset_minutes) or not (
        MIN_OFFSET_MINUTES <= timezone_offset_minutes <= MAX_OFFSET_MINUTES
    ):
        raise InvalidTimezoneOffset(timezone_offset_minutes)

    last_day = calendar.monthrange(year, month)[1]
    return MonthWindow(
        start_date=date(year, month, 1),
        end_date=date(year, month, last_day),
        timezone_offset_minutes=timezone_offset_minutes,
    )


# ---------------------------------------------------------------------------
# Bucketing
# ---------------------------------------------------------------------------

_TIMESTAMP = TypeAdapter(datetime)


def _parse_utc(value: Union[str, datetime]) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC.

    PostgREST trims trailing zeros from fractional seconds, so any fraction
    length has to parse.
    """
    if isinstance(value, str):
        value = _TIMESTAMP.validate_python(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_to_local_date(value: Union[str, datetime, date], timezone_offset_minutes: int) -> str:
    """Return the local ``YYYY-MM-DD`` an instant falls on.

    Date-only values are calendar days already and come back unchanged.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str) and len(value) == 10:
        return date.fromisoformat(value).isoformat()

    local = _parse_utc(value) + timedelta(minutes=timezone_offset_minutes)
    return local.date().isoformat()


# ---------------------------------------------------------------------------
# Day summary
# ---------------------------------------------------------------------------

def summarize_day(activities: list[CalendarActivity]) -> DaySummary:
    types = {a.type for a in activities}
    return DaySummary(
        total_activities=len(activities),
        completed_activities=sum(1 for a in activities if a.completed_at is not None),
        has_workout="workout" in types,
        has_stretch="stretch" in types,
        has_meditation="meditation" in types,
    )


def _chronological_key(activity: CalendarActivity) -> tuple[bool, datetime]:
    if activity.completed_at is None:
        return True, _UNTIMED
    return False, _parse_utc(activity.completed_at)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class CalendarService:
    """Assembles the monthly calendar from injected activity sources."""

    def __init__(
        self,
        workout_source: ActivitySource,
        stretch_source: ActivitySource,
        meditation_source: ActivitySource,
    ) -> None:
        # Concatenation order of same-time activities within a day
        self._sources = (workout_source, stretch_source, meditation_source)

    async def _fetch(
        self, source: ActivitySource, user_id: str, utc_start: datetime, utc_end: datetime
    ) -> list[ActivityRecord]:
        try:
            return await source.fetch_in_range(user_id, utc_start, utc_end)
        except Exception as exc:
            logger.exception(
                "Calendar source '%s' failed for user %s (%s .. %s)",
                source.name, user_id, utc_start.isoformat(), utc_end.isoformat(),
            )
            raise SourceUnavailable(source.name) from exc

    async def get_month_data(
        self,
        user_id: str,
        year: int,
        month: int,
        timezone_offset_minutes: int = 0,
    ) -> CalendarDataResponse:
        """Return the sparse calendar for one local month."""
        window = resolve_month_window(year, month, timezone_offset_minutes)
        utc_start, utc_end = window.utc_fetch_range()

        results = await asyncio.gather(
            *(self._fetch(source, user_id, utc_start, utc_end) for source in self._sources)
        )

        by_date: dict[str, list[CalendarActivity]] = {}
        for records in results:
            for record in records:
                local_date = utc_to_local_date(record.occurred_at, timezone_offset_minutes)
                if not window.contains(date.fromisoformat(local_date)):
                    continue
                activity = ACTIVITY_MODELS[record.type](
                    id=record.id,
                    date=local_date,
                    completed_at=record.completed_at,
                    summary=record.summary,
                )
                by_date.setdefault(local_date, []).append(activity)

        days: dict[str, CalendarDayData] = {}
        for local_date in sorted(by_date):
            # sorted() is stable, so ties keep workout -> stretch -> meditation order
            activities = sorted(by_date[local_date], key=_chronological_key)
            days[local_date] = CalendarDayData(
                date=local_date,
                activities=activities,
                summary=summarize_day(activities),
            )

        logger.info(
            "Calendar %04d-%02d (tz=%d) for user %s: %d active days",
            year, month, timezone_offset_minutes, user_id, len(days),
        )
        return CalendarDataResponse(
            start_date=window.start_date,
            end_date=window.end_date,
            days=days,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_calendar_service() -> CalendarService:
    """Build a calendar service wired to the Supabase-backed sources."""
    db = get_supabase_client()
    return CalendarService(
        workout_source=WorkoutSource(db),
        stretch_source=StretchSource(db),
        meditation_source=MeditationSource(db),
    )
