"""
Coaching phase state machine.

assessment -> recovery -> recomp -> cutting -> recovery -> ...

`evaluate_phase_transition` only recommends; `execute_phase_transition`
moves the profile along one edge of the cycle and recomputes its targets.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Literal, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.config import settings
from vitalpath.models import UserProfile
from vitalpath.notifications import NotificationService
from vitalpath.nutrition import compute_phase_targets
from vitalpath.records import DailyLogRecord
from vitalpath.repositories import DailyLogRepo, ProfileRepo
from vitalpath.timeutil import today_in

logger = logging.getLogger(__name__)

WeightTrend = Literal["gaining", "losing", "stable"]

PHASES = ("assessment", "recovery", "recomp", "cutting")
NEXT_PHASE = {
    "assessment": "recovery",
    "recovery": "recomp",
    "recomp": "cutting",
    "cutting": "recovery",
}

NEUTRAL_BIOFEEDBACK = 5.0
WEIGHT_TREND_THRESHOLD_KG = 0.3
WEIGHT_TREND_ENTRIES = 14
WEIGHT_TREND_SAMPLE = 3
ADHERENCE_TOLERANCE = 0.10

# recovery -> recomp
RECOVERY_MIN_WEEKS = 8
RECOVERY_MIN_SCORE = 6.5
RECOVERY_MAX_WEEKS = 12
# recomp -> cutting
RECOMP_MIN_WEEKS = 12
RECOMP_WEIGHT_MARGIN_KG = 2.0
RECOMP_LONG_WEEKS = 16
RECOMP_LONG_MIN_SCORE = 7.0
# cutting -> recovery
CUTTING_MIN_WEEKS = 8
CUTTING_FATIGUE_SCORE = 5.0
CUTTING_MAX_WEEKS = 12
CUTTING_HIGH_STRESS = 7.0
CUTTING_LOW_ENERGY = 5.0


class ProfileNotFoundError(LookupError):
    pass


class InvalidPhaseTransitionError(ValueError):
    pass


@dataclass(frozen=True)
class PhaseMetrics:
    average_energy: float
    average_sleep: float
    average_stress: float
    average_mood: float
    weight_trend: WeightTrend
    calorie_adherence: float


@dataclass(frozen=True)
class PhaseEvaluation:
    current_phase: str
    weeks_in_phase: int
    ready_for_transition: bool
    suggested_phase: str | None
    reason: str
    biofeedback_score: float
    metrics: PhaseMetrics

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def weeks_in_phase(phase_start: dt.date | None, today: dt.date) -> int:
    if phase_start is None:
        return 0
    return abs((today - phase_start).days) // 7


def biofeedback_score(logs: Iterable[DailyLogRecord]) -> float:
    """Mean of every energy, sleep quality, mood and inverted stress sample."""
    samples: list[float] = []
    for log in logs:
        if log.energy_level:
            samples.append(log.energy_level)
        if log.sleep_quality:
            samples.append(log.sleep_quality)
        if log.mood_rating:
            samples.append(log.mood_rating)
        if log.stress_level:
            samples.append(11 - log.stress_level)
    if not samples:
        return NEUTRAL_BIOFEEDBACK
    return sum(samples) / len(samples)


def weight_trend(logs: Sequence[DailyLogRecord]) -> WeightTrend:
    """`logs` are most recent first."""
    weighed = [x.weight_kg for x in logs if x.weight_kg][:WEIGHT_TREND_ENTRIES]
    if len(weighed) < WEIGHT_TREND_SAMPLE:
        return "stable"
    recent = sum(weighed[:WEIGHT_TREND_SAMPLE]) / WEIGHT_TREND_SAMPLE
    older = sum(weighed[-WEIGHT_TREND_SAMPLE:]) / WEIGHT_TREND_SAMPLE
    diff = recent - older
    if diff > WEIGHT_TREND_THRESHOLD_KG:
        return "gaining"
    if diff < -WEIGHT_TREND_THRESHOLD_KG:
        return "losing"
    return "stable"


def calorie_adherence(logs: Iterable[DailyLogRecord], target_calories: int) -> float:
    """Percent of calorie-logged days within 10% of the target."""
    logged = [x.calories_consumed for x in logs if x.calories_consumed]
    if not logged:
        return 0.0
    within = [c for c in logged if abs(c - target_calories) <= target_calories * ADHERENCE_TOLERANCE]
    return len(within) / len(logged) * 100


def _mean_present(values: Iterable[int | None]) -> float:
    vals = [v for v in values if v]
    return sum(vals) / len(vals) if vals else 0.0


def phase_metrics(logs: Sequence[DailyLogRecord], target_calories: int) -> PhaseMetrics:
    return PhaseMetrics(
        average_energy=_mean_present(x.energy_level for x in logs),
        average_sleep=_mean_present(x.sleep_quality for x in logs),
        average_stress=_mean_present(x.stress_level for x in logs),
        average_mood=_mean_present(x.mood_rating for x in logs),
        weight_trend=weight_trend(logs),
        calorie_adherence=calorie_adherence(logs, target_calories),
    )


def decide_transition(
    *,
    current_phase: str,
    weeks: int,
    score: float,
    metrics: PhaseMetrics,
    current_weight_kg: float | None = None,
    target_weight_kg: float | None = None,
) -> tuple[bool, str | None, str]:
    """Apply the phase guards; returns (ready, suggested phase, reason)."""
    if current_phase == "assessment":
        return True, "recovery", "Complete your assessment to begin your journey with a metabolic recovery phase."

    if current_phase == "recovery":
        if weeks >= RECOVERY_MIN_WEEKS and score >= RECOVERY_MIN_SCORE:
            return True, "recomp", (
                f"After {weeks} weeks in recovery with strong biofeedback ({score:.1f}/10), "
                "you're metabolically healthy and ready for body recomposition."
            )
        if weeks >= RECOVERY_MAX_WEEKS:
            return True, "recomp", (
                f"You've been in recovery for {weeks} weeks. "
                "Even with moderate biofeedback scores, it's time to try the next phase."
            )
        if weeks < RECOVERY_MIN_WEEKS:
            return False, None, (
                f"Continue recovery for {RECOVERY_MIN_WEEKS - weeks} more weeks to allow full metabolic adaptation."
            )
        return False, None, (
            f"Biofeedback score ({score:.1f}/10) suggests continued recovery. "
            "Focus on sleep, stress management, and energy."
        )

    if current_phase == "recomp":
        above_target = (
            current_weight_kg is not None
            and target_weight_kg is not None
            and current_weight_kg > target_weight_kg + RECOMP_WEIGHT_MARGIN_KG
        )
        if weeks >= RECOMP_MIN_WEEKS and above_target:
            return True, "cutting", (
                f"After {weeks} weeks of recomposition, you may benefit from a focused fat loss phase "
                "to reach your target weight."
            )
        if weeks >= RECOMP_LONG_WEEKS and score >= RECOMP_LONG_MIN_SCORE:
            return True, "cutting", (
                f"Strong biofeedback and {weeks} weeks of recomp indicate readiness for a fat loss phase."
            )
        if weeks < RECOMP_MIN_WEEKS:
            return False, None, (
                f"Continue recomposition for {RECOMP_MIN_WEEKS - weeks} more weeks "
                "to build muscle and optimize metabolism."
            )
        return False, None, "Continue recomposition to build more metabolic capacity before entering a deficit."

    if current_phase == "cutting":
        if weeks >= CUTTING_MIN_WEEKS and score < CUTTING_FATIGUE_SCORE:
            return True, "recovery", (
                f"Biofeedback ({score:.1f}/10) indicates fatigue after {weeks} weeks of cutting. "
                "Time for a recovery phase."
            )
        if weeks >= CUTTING_MAX_WEEKS:
            return True, "recovery", (
                f"{weeks} weeks is a good cutting duration. "
                "A recovery phase will help maintain progress and restore metabolic rate."
            )
        if metrics.average_stress > CUTTING_HIGH_STRESS and metrics.average_energy < CUTTING_LOW_ENERGY:
            return True, "recovery", (
                "High stress and low energy suggest metabolic adaptation. Consider transitioning to recovery."
            )
        return False, None, (
            f"Continue your fat loss phase. {max(0, CUTTING_MIN_WEEKS - weeks)} to "
            f"{max(0, CUTTING_MAX_WEEKS - weeks)} weeks remaining recommended."
        )

    return False, None, f"Unknown phase {current_phase!r}."


class PhaseService:
    def __init__(self, db: AsyncSession, notifications: NotificationService | None = None):
        self.db = db
        self.profiles = ProfileRepo(db)
        self.logs = DailyLogRepo(db)
        self.notifications = notifications or NotificationService(db)

    async def _profile(self, user_id: str) -> UserProfile:
        profile = await self.profiles.get(user_id)
        if not profile:
            raise ProfileNotFoundError(f"Profile not found for user {user_id}")
        return profile

    async def evaluate_phase_transition(self, user_id: str) -> PhaseEvaluation:
        profile = await self._profile(user_id)
        today = today_in(profile.timezone or settings.default_timezone)
        logs = await self.logs.between(user_id, today - dt.timedelta(days=settings.phase_window_days), today)

        current = profile.current_phase or "assessment"
        weeks = weeks_in_phase(profile.phase_start_date, today)
        score = biofeedback_score(logs)
        metrics = phase_metrics(logs, profile.target_calories or settings.default_target_calories)

        ready, suggested, reason = decide_transition(
            current_phase=current,
            weeks=weeks,
            score=score,
            metrics=metrics,
            current_weight_kg=profile.current_weight_kg,
            target_weight_kg=profile.target_weight_kg,
        )
        logger.info(
            "Phase evaluation user=%s phase=%s weeks=%s score=%.2f ready=%s",
            user_id, current, weeks, score, ready,
        )
        return PhaseEvaluation(
            current_phase=current,
            weeks_in_phase=weeks,
            ready_for_transition=ready,
            suggested_phase=suggested,
            reason=reason,
            biofeedback_score=score,
            metrics=metrics,
        )

    async def execute_phase_transition(self, user_id: str, new_phase: str) -> UserProfile:
        if new_phase not in ("recovery", "recomp", "cutting"):
            raise InvalidPhaseTransitionError(f"Invalid phase specified: {new_phase!r}")

        profile = await self._profile(user_id)
        current = profile.current_phase or "assessment"
        if NEXT_PHASE.get(current) != new_phase:
            raise InvalidPhaseTransitionError(f"Cannot move from {current} to {new_phase}")

        targets = compute_phase_targets(
            age=profile.age,
            sex=profile.sex,
            height_cm=profile.height_cm,
            weight_kg=profile.current_weight_kg,
            activity=profile.activity_level,
            force_phase=new_phase,
        )
        today = today_in(profile.timezone or settings.default_timezone)
        updated = await self.profiles.update(
            user_id,
            {
                "current_phase": new_phase,
                "phase_start_date": today,
                "maintenance_calories": targets.maintenance_calories,
                "target_calories": targets.calories,
                "protein_grams": targets.protein_g,
                "carbs_grams": targets.carbs_g,
                "fat_grams": targets.fat_g,
            },
        )
        if updated is None:
            raise ProfileNotFoundError(f"Failed to update profile for user {user_id}")
        logger.info("User %s moved %s -> %s (%s kcal)", user_id, current, new_phase, targets.calories)

        await self.notifications.phase_transition_complete(user_id, new_phase)
        return updated

    async def evaluate_and_transition(self, user_id: str) -> tuple[PhaseEvaluation, UserProfile | None]:
        ev = await self.evaluate_phase_transition(user_id)
        if not ev.ready_for_transition or ev.suggested_phase is None:
            return ev, None
        return ev, await self.execute_phase_transition(user_id, ev.suggested_phase)
