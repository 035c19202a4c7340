"""
Plain, immutable views of the logs the engine reduces over.

Repositories convert ORM rows into these so the reducers in `analytics` and
`phase` never touch a session or a raw JSON payload.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass


@dataclass(frozen=True)
class SetRecord:
    reps: int
    weight_kg: float | None = None  # None = bodyweight


@dataclass(frozen=True)
class DailyLogRecord:
    log_date: dt.date
    weight_kg: float | None = None
    calories_consumed: int | None = None
    protein_grams: float | None = None
    carbs_grams: float | None = None
    fat_grams: float | None = None
    steps: int | None = None
    sleep_hours: float | None = None
    sleep_quality: int | None = None
    energy_level: int | None = None
    stress_level: int | None = None
    mood_rating: int | None = None
    workout_completed: bool = False
    workout_type: str | None = None
    workout_duration_minutes: int | None = None


@dataclass(frozen=True)
class ExerciseLogRecord:
    exercise_name: str
    log_date: dt.date
    # None when only the prescription is known (no per-set data logged)
    set_details: tuple[SetRecord, ...] | None = None
    completed_sets: int = 0
    prescribed_sets: int | None = None
    prescribed_reps: str | None = None
    prescribed_rir: int | None = None
