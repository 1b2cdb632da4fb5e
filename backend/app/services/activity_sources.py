"""
Activity Source Readers
=======================
Read-only range queries over the three activity stores that feed the
calendar: lifting workouts, stretch sessions and meditation sessions.

Every reader exposes the same operation:

    await source.fetch_in_range(user_id, utc_start, utc_end) -> list[ActivityRecord]

``utc_start`` is inclusive, ``utc_end`` exclusive. Records come back
already shaped with their per-type calendar summary; bucketing into local
days is the calendar service's job. No ordering is promised.

The Supabase client is synchronous, so each ``execute()`` runs in a worker
thread. That keeps the three readers concurrent when the calendar service
gathers them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol, Union

from pydantic import BaseModel
from supabase import Client

from app.config import get_settings
from app.models.calendar import (
    MeditationActivitySummary,
    StretchActivitySummary,
    WorkoutActivitySummary,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DELOAD_WEEK_NUMBER = 7  # final week of a mesocycle
UNKNOWN_DAY_NAME = "Unknown"


# ---------------------------------------------------------------------------
# Record + reader contract
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivityRecord:
    """One activity as returned by a reader, before local-day bucketing.

    ``occurred_at`` is what gets bucketed: the completion timestamp, or the
    scheduled calendar date for a workout that was never completed.
    """

    id: str
    type: str
    completed_at: Optional[str]
    occurred_at: str
    summary: Union[WorkoutActivitySummary, StretchActivitySummary, MeditationActivitySummary]


class ActivitySource(Protocol):
    name: str

    async def fetch_in_range(
        self, user_id: str, utc_start: datetime, utc_end: datetime
    ) -> list[ActivityRecord]:
        ...


async def _execute(query) -> list[dict]:
    result = await asyncio.to_thread(query.execute)
    return result.data or []


def _covered_dates(utc_start: datetime, utc_end: datetime) -> tuple[str, str]:
    """Inclusive calendar-date bounds touched by a half-open UTC range."""
    last_instant = utc_end - timedelta(microseconds=1)
    return utc_start.date().isoformat(), last_instant.date().isoformat()


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------

class WorkoutSource:
    """Completed and skipped lifting workouts.

    Completed workouts are matched on ``completed_at``. Skipped workouts have
    no completion time, so they are matched on ``scheduled_date`` and carry
    ``completed_at=None``. Sets and plan days are loaded concurrently, one
    batched query each.
    """

    name = "workouts"

    def __init__(self, db: Client) -> None:
        settings = get_settings()
        self._db = db
        self._workouts = settings.workouts_table
        self._sets = settings.workout_sets_table
        self._plan_days = settings.plan_days_table

    async def fetch_in_range(
        self, user_id: str, utc_start: datetime, utc_end: datetime
    ) -> list[ActivityRecord]:
        first_date, last_date = _covered_dates(utc_start, utc_end)

        completed_rows, skipped_rows = await asyncio.gather(
            _execute(
                self._db.table(self._workouts)
                .select("*")
                .eq("user_id", user_id)
                .eq("status", "completed")
                .gte("completed_at", utc_start.isoformat())
                .lt("completed_at", utc_end.isoformat())
            ),
            _execute(
                self._db.table(self._workouts)
                .select("*")
                .eq("user_id", user_id)
                .eq("status", "skipped")
                .gte("scheduled_date", first_date)
                .lte("scheduled_date", last_date)
            ),
        )
        workouts = completed_rows + skipped_rows
        if not workouts:
            return []

        workout_ids = [w["id"] for w in workouts]
        plan_day_ids = sorted({w["plan_day_id"] for w in workouts if w.get("plan_day_id")})

        set_rows, plan_day_rows = await asyncio.gather(
            _execute(
                self._db.table(self._sets)
                .select("workout_id, exercise_id, status")
                .in_("workout_id", workout_ids)
            ),
            self._load_plan_days(plan_day_ids),
        )

        sets_by_workout: dict[str, list[dict]] = {}
        for row in set_rows:
            sets_by_workout.setdefault(row["workout_id"], []).append(row)
        day_names = {row["id"]: row["name"] for row in plan_day_rows}

        records = []
        for workout in workouts:
            sets = sets_by_workout.get(workout["id"], [])
            week_number = int(workout.get("week_number") or 1)
            completed_at = workout.get("completed_at") or None
            records.append(
                ActivityRecord(
                    id=workout["id"],
                    type="workout",
                    completed_at=completed_at,
                    occurred_at=completed_at or workout["scheduled_date"],
                    summary=WorkoutActivitySummary(
                        day_name=day_names.get(workout.get("plan_day_id"), UNKNOWN_DAY_NAME),
                        exercise_count=len({s["exercise_id"] for s in sets}),
                        sets_completed=sum(1 for s in sets if s.get("status") == "completed"),
                        total_sets=len(sets),
                        week_number=week_number,
                        is_deload=week_number == DELOAD_WEEK_NUMBER,
                    ),
                )
            )

        logger.debug("Loaded %d workouts for user %s", len(records), user_id)
        return records

    async def _load_plan_days(self, plan_day_ids: list[str]) -> list[dict]:
        if not plan_day_ids:
            return []
        return await _execute(
            self._db.table(self._plan_days)
            .select("id, name")
            .in_("id", plan_day_ids)
        )


# ---------------------------------------------------------------------------
# Stretch + meditation sessions
# ---------------------------------------------------------------------------

class _SessionSource:
    """Sessions stored one row per completion, matched on ``completed_at``."""

    name: str
    activity_type: str

    def __init__(self, db: Client, table: str) -> None:
        self._db = db
        self._table = table

    def _summarize(self, row: dict) -> BaseModel:
        raise NotImplementedError

    async def fetch_in_range(
        self, user_id: str, utc_start: datetime, utc_end: datetime
    ) -> list[ActivityRecord]:
        rows = await _execute(
            self._db.table(self._table)
            .select("*")
            .eq("user_id", user_id)
            .gte("completed_at", utc_start.isoformat())
            .lt("completed_at", utc_end.isoformat())
        )

        records = [
            ActivityRecord(
                id=row["id"],
                type=self.activity_type,
                completed_at=row["completed_at"],
                occurred_at=row["completed_at"],
                summary=self._summarize(row),
            )
            for row in rows
        ]
        logger.debug("Loaded %d %s for user %s", len(records), self.name, user_id)
        return records


class StretchSource(_SessionSource):
    name = "stretch_sessions"
    activity_type = "stretch"

    def __init__(self, db: Client) -> None:
        super().__init__(db, get_settings().stretch_sessions_table)

    def _summarize(self, row: dict) -> StretchActivitySummary:
        return StretchActivitySummary(
            total_duration_seconds=int(row["total_duration_seconds"]),
            regions_completed=int(row["regions_completed"]),
            regions_skipped=int(row["regions_skipped"]),
        )


class MeditationSource(_SessionSource):
    name = "meditation_sessions"
    activity_type = "meditation"

    def __init__(self, db: Client) -> None:
        super().__init__(db, get_settings().meditation_sessions_table)

    def _summarize(self, row: dict) -> MeditationActivitySummary:
        return MeditationActivitySummary(
            duration_seconds=int(row["actual_duration_seconds"]),
            meditation_type=row["session_type"],
        )
