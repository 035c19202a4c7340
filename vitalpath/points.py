"""
Streak & points ledger.

Every user action that earns points goes through `PointsService.award_points`,
which advances the activity streak, applies the streak multiplier and writes an
immutable `PointTransaction` next to the updated `UserPoints` row.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import math
import weakref
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.config import settings
from vitalpath.models import PointTransaction, UserPoints
from vitalpath.notifications import STREAK_MILESTONES, NotificationService
from vitalpath.repositories import LEADERBOARD_PERIODS, PointsRepo, PointTransactionRepo
from vitalpath.timeutil import today_in

logger = logging.getLogger(__name__)

FOOD_LOG = 10

WORKOUT_BASE = 50
WORKOUT_PER_MINUTE = 1  # per minute over WORKOUT_FREE_MINUTES
WORKOUT_FREE_MINUTES = 15
WORKOUT_MAX_DURATION_BONUS = 30

BIOFEEDBACK_POINTS = {
    "sleep": 15,
    "energy": 10,
    "stress": 10,
    "mood": 10,
    "weight": 20,
}

# (min steps, points), highest tier first; tiers are not cumulative
STEP_TIERS = (
    (10000, 50),
    (8000, 35),
    (5000, 20),
    (2000, 10),
)

MILESTONES = {
    "first_food_log": (50, "First food logged!"),
    "first_workout": (100, "First workout completed!"),
    "day_3": (100, "3-day streak achieved!"),
    "first_week": (250, "First week completed!"),
    "streak_7": (200, "7-day streak achieved!"),
    "streak_14": (300, "14-day streak achieved!"),
    "streak_30": (500, "30-day streak achieved!"),
}

# (min streak days, multiplier), highest tier first
MULTIPLIER_TIERS = (
    (14, 4.0),
    (7, 3.0),
    (3, 2.0),
)

WELCOME_BASE = 50
WELCOME_BONUSES = {
    "target_weight": 25,
    "exercise_info": 25,
    "dieting_history": 25,
    "sleep_info": 15,
    "stress_info": 15,
    "coaching_preference": 10,
    "notifications": 25,
}
WELCOME_REFERENCE = "welcome_bonus"

# entries vanish once no coroutine holds or waits on the lock
_user_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()


def _user_lock(user_id: str) -> asyncio.Lock:
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    return lock


def get_streak_multiplier(streak: int) -> float:
    for days, mult in MULTIPLIER_TIERS:
        if streak >= days:
            return mult
    return 1.0


def get_next_multiplier_info(streak: int) -> dict[str, Any] | None:
    """Next multiplier tier and the days left until it; None at the top tier."""
    nxt: tuple[int, float] | None = None
    for days, mult in MULTIPLIER_TIERS:
        if streak >= days:
            break
        nxt = (days, mult)
    if nxt is None:
        return None
    return {"next_multiplier": nxt[1], "days_until": nxt[0] - streak}


def calculate_step_points(steps: int) -> int:
    for min_steps, pts in STEP_TIERS:
        if steps >= min_steps:
            return pts
    return 0


def calculate_workout_points(duration_minutes: int) -> int:
    bonus = min(max(0, duration_minutes - WORKOUT_FREE_MINUTES) * WORKOUT_PER_MINUTE, WORKOUT_MAX_DURATION_BONUS)
    return WORKOUT_BASE + bonus


def calculate_biofeedback_points(fields: dict[str, bool]) -> int:
    return sum(pts for name, pts in BIOFEEDBACK_POINTS.items() if fields.get(name))


def next_streak(current_streak: int, last_activity: dt.date | None, today: dt.date) -> int:
    if last_activity == today:
        return current_streak
    if last_activity == today - dt.timedelta(days=1):
        return current_streak + 1
    # first activity ever, or the streak was broken
    return 1


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def welcome_bonus_breakdown(flags: dict[str, bool]) -> dict[str, int]:
    out = {"base": WELCOME_BASE}
    for key, pts in WELCOME_BONUSES.items():
        out[key] = pts if flags.get(key) else 0
    out["total"] = sum(out.values())
    return out


@dataclass(frozen=True)
class AwardResult:
    transaction: PointTransaction
    ledger: UserPoints
    points_awarded: int


class PointsService:
    def __init__(self, db: AsyncSession, notifications: NotificationService | None = None):
        self.db = db
        self.points = PointsRepo(db)
        self.transactions = PointTransactionRepo(db)
        self.notifications = notifications or NotificationService(db)

    async def _duplicate(self, user_id: str, action_type: str, reference_id: str) -> AwardResult | None:
        dup = await self.transactions.find_by_reference(user_id, reference_id, action_type)
        if dup is None:
            return None
        logger.info("Duplicate %s award for user %s ref=%s ignored", action_type, user_id, reference_id)
        ledger = await self.points.get_or_create(user_id)
        return AwardResult(transaction=dup, ledger=ledger, points_awarded=0)

    async def award_points(
        self,
        user_id: str,
        action_type: str,
        base_points: int,
        description: str,
        reference_id: str | None = None,
        reference_type: str | None = None,
        timezone: str | None = None,
    ) -> AwardResult:
        async with _user_lock(user_id):
            if reference_id is not None:
                dup = await self._duplicate(user_id, action_type, reference_id)
                if dup is not None:
                    return dup

            ledger = await self.points.get_or_create(user_id)
            today = today_in(timezone or settings.default_timezone)
            old_streak = ledger.current_streak
            streak = next_streak(old_streak, ledger.last_activity_date, today)

            multiplier = get_streak_multiplier(streak)
            total = round_half_up(base_points * multiplier)

            tx = await self.transactions.add(
                user_id=user_id,
                action_type=action_type,
                base_points=base_points,
                multiplier=multiplier,
                total_points=total,
                description=description,
                reference_id=reference_id,
                reference_type=reference_type,
            )
            if tx is None:
                # another session recorded the same reference after our check
                dup = await self._duplicate(user_id, action_type, reference_id or "")
                if dup is None:
                    raise LookupError(f"Conflicting {action_type} award for user {user_id} not found")
                return dup
            ledger = await self.points.apply_award(
                user_id,
                total_points=total,
                current_streak=streak,
                last_activity_date=today,
            )

        logger.info(
            "Awarded %s pts to user %s for %s (base=%s x%.1f, streak=%s)",
            total, user_id, action_type, base_points, multiplier, streak,
        )
        if streak != old_streak and streak in STREAK_MILESTONES:
            await self.notifications.streak_achievement(user_id, streak)
        return AwardResult(transaction=tx, ledger=ledger, points_awarded=total)

    async def _current_multiplier(self, user_id: str) -> float:
        ledger = await self.points.get(user_id)
        return get_streak_multiplier(ledger.current_streak) if ledger else 1.0

    @staticmethod
    def _brief(result: AwardResult) -> dict[str, Any]:
        streak = result.ledger.current_streak
        return {
            "points_awarded": result.points_awarded,
            "multiplier": get_streak_multiplier(streak) if streak > 0 else 1.0,
        }

    async def award_food_log_points(
        self, user_id: str, food_entry_id: str, food_name: str, timezone: str | None = None
    ) -> dict[str, Any]:
        r = await self.award_points(
            user_id, "food_log", FOOD_LOG, f"Logged: {food_name}", food_entry_id, "food_entry", timezone
        )
        return self._brief(r)

    async def award_workout_points(
        self,
        user_id: str,
        exercise_log_id: str,
        workout_name: str,
        duration_minutes: int,
        timezone: str | None = None,
    ) -> dict[str, Any]:
        r = await self.award_points(
            user_id,
            "workout",
            calculate_workout_points(duration_minutes),
            f"Workout: {workout_name} ({duration_minutes} min)",
            exercise_log_id,
            "exercise_log",
            timezone,
        )
        return self._brief(r)

    async def award_biofeedback_points(
        self, user_id: str, daily_log_id: str, fields: dict[str, bool], timezone: str | None = None
    ) -> dict[str, Any]:
        base = calculate_biofeedback_points(fields)
        if base == 0:
            return {"points_awarded": 0, "multiplier": await self._current_multiplier(user_id)}

        logged = ", ".join(name for name in BIOFEEDBACK_POINTS if fields.get(name))
        r = await self.award_points(
            user_id, "biofeedback", base, f"Logged biofeedback: {logged}", daily_log_id, "daily_log", timezone
        )
        return self._brief(r)

    async def award_step_points(
        self,
        user_id: str,
        daily_log_id: str,
        steps: int,
        previous_steps: int | None,
        timezone: str | None = None,
    ) -> dict[str, Any]:
        new_pts = calculate_step_points(steps)
        old_pts = calculate_step_points(previous_steps) if previous_steps else 0
        delta = max(0, new_pts - old_pts)
        if delta == 0:
            return {"points_awarded": 0, "multiplier": await self._current_multiplier(user_id)}

        # one transaction per tier reached on a given day
        r = await self.award_points(
            user_id,
            "steps",
            delta,
            f"Steps milestone: {steps:,} steps",
            f"{daily_log_id}:{new_pts}",
            "daily_log",
            timezone,
        )
        return self._brief(r)

    async def award_milestone_points(self, user_id: str, milestone_key: str, timezone: str | None = None) -> dict[str, Any]:
        entry = MILESTONES.get(milestone_key)
        if entry is None:
            logger.debug("Unknown milestone %r for user %s", milestone_key, user_id)
            return {"points_awarded": 0}
        base, description = entry
        r = await self.award_points(user_id, "milestone", base, description, milestone_key, "milestone", timezone)
        return {"points_awarded": r.points_awarded}

    async def award_welcome_bonus_points(
        self, user_id: str, flags: dict[str, bool], timezone: str | None = None
    ) -> dict[str, Any]:
        """One-time onboarding bonus; always 1x and restarts the streak at 1."""
        breakdown = welcome_bonus_breakdown(flags)
        async with _user_lock(user_id):
            dup = await self.transactions.find_by_reference(user_id, WELCOME_REFERENCE, "welcome_bonus")
            if dup is not None:
                return {"points_awarded": 0, "breakdown": breakdown}

            await self.points.get_or_create(user_id)
            today = today_in(timezone or settings.default_timezone)
            tx = await self.transactions.add(
                user_id=user_id,
                action_type="welcome_bonus",
                base_points=breakdown["total"],
                multiplier=1.0,
                total_points=breakdown["total"],
                description="Welcome bonus for completing your profile",
                reference_id=WELCOME_REFERENCE,
                reference_type="onboarding",
            )
            if tx is None:
                return {"points_awarded": 0, "breakdown": breakdown}
            # TODO: keep an existing same-day streak instead of forcing 1 once product confirms
            await self.points.apply_award(
                user_id,
                total_points=tx.total_points,
                current_streak=1,
                last_activity_date=today,
            )
        logger.info("Welcome bonus of %s pts for user %s", tx.total_points, user_id)
        return {"points_awarded": tx.total_points, "breakdown": breakdown}

    async def get_points_summary(self, user_id: str) -> dict[str, Any]:
        ledger = await self.points.get(user_id)
        if not ledger:
            return {
                "lifetime_points": 0,
                "spendable_points": 0,
                "daily_points": 0,
                "weekly_points": 0,
                "monthly_points": 0,
                "current_streak": 0,
                "longest_streak": 0,
                "current_multiplier": 1.0,
                "next_multiplier_info": get_next_multiplier_info(0),
            }
        return {
            "lifetime_points": ledger.lifetime_points,
            "spendable_points": ledger.spendable_points,
            "daily_points": ledger.daily_points,
            "weekly_points": ledger.weekly_points,
            "monthly_points": ledger.monthly_points,
            "current_streak": ledger.current_streak,
            "longest_streak": ledger.longest_streak,
            "current_multiplier": get_streak_multiplier(ledger.current_streak),
            "next_multiplier_info": get_next_multiplier_info(ledger.current_streak),
        }

    async def get_leaderboard(self, period: str, limit: int | None = None) -> list[dict[str, Any]]:
        if period not in LEADERBOARD_PERIODS:
            raise ValueError(f"Unknown leaderboard period: {period!r}")
        return await self.points.leaderboard(period, limit or settings.leaderboard_limit)

    async def reset_period_points(self, period: str) -> int:
        if period not in LEADERBOARD_PERIODS:
            raise ValueError(f"Unknown leaderboard period: {period!r}")
        n = await self.points.reset_period(period)
        logger.info("Reset %s points for %s ledgers", period, n)
        return n
