"""
Workout analytics: read-only reducers over a window of daily and exercise logs.

Nothing here writes; `WorkoutAnalyticsService` only loads the window.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.config import settings
from vitalpath.records import DailyLogRecord, ExerciseLogRecord, SetRecord
from vitalpath.repositories import DailyLogRepo, ExerciseLogRepo, ProfileRepo
from vitalpath.timeutil import today_in

Trend = Literal["improving", "maintaining", "declining"]

MUSCLE_GROUPS: dict[str, tuple[str, ...]] = {
    # push
    "Bench Press": ("chest", "triceps", "shoulders"),
    "Dumbbell Bench Press": ("chest", "triceps", "shoulders"),
    "Incline Press": ("chest", "triceps", "shoulders"),
    "Overhead Press": ("shoulders", "triceps"),
    "Dumbbell Press": ("chest", "triceps"),
    "Push-ups": ("chest", "triceps"),
    "Dips": ("chest", "triceps"),
    "Tricep Extensions": ("triceps",),
    "Lateral Raises": ("shoulders",),
    # pull
    "Rows": ("back", "biceps"),
    "Bent Over Rows": ("back", "biceps"),
    "Cable Rows": ("back", "biceps"),
    "Pull-ups": ("back", "biceps"),
    "Chin-ups": ("back", "biceps"),
    "Lat Pulldown": ("back", "biceps"),
    "Face Pulls": ("shoulders", "back"),
    "Bicep Curls": ("biceps",),
    # legs
    "Squats": ("quads", "glutes"),
    "Goblet Squats": ("quads", "glutes"),
    "Leg Press": ("quads", "glutes"),
    "Deadlifts": ("hamstrings", "glutes", "back"),
    "Romanian Deadlifts": ("hamstrings", "glutes"),
    "RDLs": ("hamstrings", "glutes"),
    "Lunges": ("quads", "glutes"),
    "Split Squats": ("quads", "glutes"),
    "Leg Curls": ("hamstrings",),
    "Leg Extensions": ("quads",),
    "Calf Raises": ("calves",),
    "Hip Thrusts": ("glutes",),
    # core
    "Planks": ("core",),
    "Dead Bug": ("core",),
    "Bird Dogs": ("core",),
    "Ab Wheel": ("core",),
    "Crunches": ("core",),
    "Russian Twists": ("core",),
    "Pallof Press": ("core",),
    # full body
    "Thrusters": ("quads", "shoulders", "core"),
    "Burpees": ("full body",),
    "Kettlebell Swings": ("hamstrings", "glutes", "back"),
}

DEFAULT_PRESCRIBED_REPS = 10
TREND_SESSIONS = 3
TREND_THRESHOLD = 0.05
RECENT_PERFORMANCES = 5
MIN_SESSIONS = 2
TOP_EXERCISES = 10

_FIRST_NUMBER = re.compile(r"\d+")


@dataclass(frozen=True)
class WorkoutSummary:
    total_workouts: int
    workouts_this_week: int
    workouts_this_month: int
    average_workouts_per_week: float
    favorite_workout_type: str
    total_volume_kg: int


@dataclass
class WeeklyTrend:
    week: str
    week_label: str
    workout_count: int = 0
    total_volume: float = 0
    avg_duration: int = 0


@dataclass(frozen=True)
class MuscleGroupData:
    muscle_group: str
    workouts: int
    last_trained: dt.date | None
    days_since_last_trained: int | None


@dataclass(frozen=True)
class Performance:
    date: dt.date
    weight: float
    reps: int


@dataclass(frozen=True)
class ExerciseProgress:
    exercise_name: str
    best_weight: float
    best_reps: int
    total_sets: int
    recent_performance: list[Performance] = field(default_factory=list)
    trend: Trend = "maintaining"


@dataclass(frozen=True)
class StreakData:
    current_streak: int
    longest_streak: int
    last_workout_date: dt.date | None


@dataclass(frozen=True)
class WorkoutAnalytics:
    summary: WorkoutSummary
    weekly_trends: list[WeeklyTrend]
    muscle_group_frequency: list[MuscleGroupData]
    exercise_progress: list[ExerciseProgress]
    streaks: StreakData

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _round1(x: float) -> float:
    return math.floor(x * 10 + 0.5) / 10


def get_muscle_groups(exercise_name: str) -> tuple[str, ...]:
    """Exact lookup first, then a case-insensitive substring match either way."""
    if exercise_name in MUSCLE_GROUPS:
        return MUSCLE_GROUPS[exercise_name]
    lower = exercise_name.lower().strip()
    if lower:
        for known, muscles in MUSCLE_GROUPS.items():
            k = known.lower()
            if k in lower or lower in k:
                return muscles
    return ("other",)


def _prescribed_reps(prescribed: str | None) -> int:
    m = _FIRST_NUMBER.search(prescribed or "")
    n = int(m.group(0)) if m else 0
    return n or DEFAULT_PRESCRIBED_REPS


def exercise_volume(log: ExerciseLogRecord) -> float:
    if log.set_details is None:
        # no per-set data: estimate from the prescription
        return log.completed_sets * _prescribed_reps(log.prescribed_reps)
    # bodyweight sets count as weight 1 so reps still add volume
    return sum(s.reps * (s.weight_kg or 1) for s in log.set_details)


def iso_week(d: dt.date) -> str:
    year, week, _ = d.isocalendar()
    return f"{year}-W{week:02d}"


def week_label(week: str) -> str:
    return f"Week {int(week.split('-W')[1])}"


def calculate_workout_summary(
    daily_logs: Sequence[DailyLogRecord],
    exercise_logs: Sequence[ExerciseLogRecord],
    today: dt.date | None = None,
) -> WorkoutSummary:
    if not daily_logs:
        return WorkoutSummary(
            total_workouts=0,
            workouts_this_week=0,
            workouts_this_month=0,
            average_workouts_per_week=0,
            favorite_workout_type="none",
            total_volume_kg=0,
        )

    today = today or dt.date.today()
    workouts = [x for x in daily_logs if x.workout_completed]

    # weeks start on Sunday here; weekly trends use ISO weeks
    week_start = today - dt.timedelta(days=(today.weekday() + 1) % 7)
    month_start = today.replace(day=1)

    dates = [x.log_date for x in daily_logs]
    weeks_span = max(1, math.ceil((max(dates) - min(dates)).days / 7))

    types = Counter(x.workout_type or "strength" for x in workouts)
    favorite = types.most_common(1)[0][0] if types else "none"

    return WorkoutSummary(
        total_workouts=len(workouts),
        workouts_this_week=sum(1 for x in workouts if x.log_date >= week_start),
        workouts_this_month=sum(1 for x in workouts if x.log_date >= month_start),
        average_workouts_per_week=_round1(len(workouts) / weeks_span),
        favorite_workout_type=favorite,
        total_volume_kg=int(math.floor(sum(exercise_volume(x) for x in exercise_logs) + 0.5)),
    )


def calculate_weekly_trends(
    daily_logs: Sequence[DailyLogRecord],
    exercise_logs: Sequence[ExerciseLogRecord],
    weeks: int = 8,
    today: dt.date | None = None,
) -> list[WeeklyTrend]:
    today = today or dt.date.today()
    trends: dict[str, WeeklyTrend] = {}
    for i in range(weeks - 1, -1, -1):
        w = iso_week(today - dt.timedelta(days=7 * i))
        trends[w] = WeeklyTrend(week=w, week_label=week_label(w))

    durations: dict[str, list[int]] = {}
    for log in daily_logs:
        if not log.workout_completed:
            continue
        w = iso_week(log.log_date)
        if w not in trends:
            continue
        trends[w].workout_count += 1
        if log.workout_duration_minutes:
            durations.setdefault(w, []).append(log.workout_duration_minutes)

    for log in exercise_logs:
        w = iso_week(log.log_date)
        if w in trends:
            trends[w].total_volume += exercise_volume(log)

    for w, mins in durations.items():
        trends[w].avg_duration = int(sum(mins) / len(mins) + 0.5)

    return list(trends.values())


def calculate_muscle_group_frequency(
    exercise_logs: Sequence[ExerciseLogRecord],
    today: dt.date | None = None,
) -> list[MuscleGroupData]:
    today = today or dt.date.today()
    counts: dict[str, int] = {}
    last: dict[str, dt.date] = {}
    for log in exercise_logs:
        for muscle in get_muscle_groups(log.exercise_name):
            counts[muscle] = counts.get(muscle, 0) + 1
            if muscle not in last or log.log_date > last[muscle]:
                last[muscle] = log.log_date

    out = [
        MuscleGroupData(
            muscle_group=m,
            workouts=n,
            last_trained=last.get(m),
            days_since_last_trained=(today - last[m]).days if m in last else None,
        )
        for m, n in counts.items()
    ]
    out.sort(key=lambda x: x.workouts, reverse=True)
    return out


def _best_set(sets: Sequence[SetRecord]) -> SetRecord | None:
    best: SetRecord | None = None
    for s in sets:
        if (s.weight_kg or 0) > ((best.weight_kg or 0) if best else 0):
            best = s
    return best


def classify_trend(performances: Sequence[Performance]) -> Trend:
    if len(performances) < TREND_SESSIONS * 2:
        return "maintaining"
    recent = performances[-TREND_SESSIONS:]
    previous = performances[-TREND_SESSIONS * 2 : -TREND_SESSIONS]
    recent_avg = sum(p.weight for p in recent) / TREND_SESSIONS
    previous_avg = sum(p.weight for p in previous) / TREND_SESSIONS
    if previous_avg == 0:
        return "improving" if recent_avg > 0 else "maintaining"
    diff = (recent_avg - previous_avg) / previous_avg
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "declining"
    return "maintaining"


def calculate_exercise_progress(exercise_logs: Sequence[ExerciseLogRecord]) -> list[ExerciseProgress]:
    by_exercise: dict[str, list[ExerciseLogRecord]] = {}
    for log in exercise_logs:
        by_exercise.setdefault(log.exercise_name, []).append(log)

    out: list[ExerciseProgress] = []
    for name, logs in by_exercise.items():
        if len(logs) < MIN_SESSIONS:
            continue
        logs = sorted(logs, key=lambda x: x.log_date)

        best_weight = 0.0
        best_reps = 0
        total_sets = 0
        performances: list[Performance] = []
        for log in logs:
            total_sets += log.completed_sets
            if log.set_details is None:
                continue
            for s in log.set_details:
                best_weight = max(best_weight, s.weight_kg or 0)
                best_reps = max(best_reps, s.reps)
            top = _best_set(log.set_details)
            if top is not None:
                performances.append(Performance(date=log.log_date, weight=top.weight_kg or 0, reps=top.reps))

        out.append(
            ExerciseProgress(
                exercise_name=name,
                best_weight=_round1(best_weight),
                best_reps=best_reps,
                total_sets=total_sets,
                recent_performance=performances[-RECENT_PERFORMANCES:],
                trend=classify_trend(performances),
            )
        )

    out.sort(key=lambda x: x.total_sets, reverse=True)
    return out[:TOP_EXERCISES]


def calculate_streaks(daily_logs: Sequence[DailyLogRecord], today: dt.date | None = None) -> StreakData:
    """
    Workout-completion streaks, independent of the points streak.

    The current streak walks back from today and allows each logged workout
    to be at most one day before the previous one (today itself may be
    missing). The longest streak requires strictly consecutive dates.
    """
    dates = sorted((x.log_date for x in daily_logs if x.workout_completed), reverse=True)
    if not dates:
        return StreakData(current_streak=0, longest_streak=0, last_workout_date=None)

    today = today or dt.date.today()
    current = 0
    check = today
    for d in dates:
        if (check - d).days > 1:
            break
        current += 1
        check = d

    longest = 0
    run = 0
    prev: dt.date | None = None
    for d in reversed(dates):
        if prev is not None and (d - prev).days == 1:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
        prev = d
    longest = max(longest, run)

    return StreakData(current_streak=current, longest_streak=longest, last_workout_date=dates[0])


def generate_workout_analytics(
    daily_logs: Sequence[DailyLogRecord],
    exercise_logs: Sequence[ExerciseLogRecord],
    *,
    weeks: int = 8,
    today: dt.date | None = None,
) -> WorkoutAnalytics:
    today = today or dt.date.today()
    return WorkoutAnalytics(
        summary=calculate_workout_summary(daily_logs, exercise_logs, today=today),
        weekly_trends=calculate_weekly_trends(daily_logs, exercise_logs, weeks=weeks, today=today),
        muscle_group_frequency=calculate_muscle_group_frequency(exercise_logs, today=today),
        exercise_progress=calculate_exercise_progress(exercise_logs),
        streaks=calculate_streaks(daily_logs, today=today),
    )


class WorkoutAnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def generate(self, user_id: str, days: int | None = None) -> WorkoutAnalytics:
        profile = await ProfileRepo(self.db).get(user_id)
        today = today_in((profile.timezone if profile else None) or settings.default_timezone)
        start = today - dt.timedelta(days=days or settings.analytics_window_days)

        daily = await DailyLogRepo(self.db).between(user_id, start, today)
        exercises = await ExerciseLogRepo(self.db).between(user_id, start, today)
        return generate_workout_analytics(daily, exercises, weeks=settings.weekly_trend_weeks, today=today)
