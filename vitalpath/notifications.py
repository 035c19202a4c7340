from __future__ import annotations

import datetime as dt
import logging
import math

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.models import Notification
from vitalpath.repositories import DailyLogRepo, NotificationRepo, ProfileRepo
from vitalpath.timeutil import now_in

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (3, 7, 14, 30, 60, 90)
# Logging-day streaks only announce from one week on
LOGGING_STREAK_MILESTONES = (7, 14, 30, 60, 90)
WEIGHT_MILESTONE_STEP_KG = 2.5
WEIGHT_MILESTONE_WINDOW_KG = 0.5
REMINDER_HOUR = 14

PHASE_NAMES = {
    "recovery": "Metabolic Recovery",
    "recomp": "Body Recomposition",
    "cutting": "Fat Loss",
}


def weight_milestone(weight_lost_kg: float) -> float | None:
    """Highest 2.5 kg step reached, only while the loss is still close to it."""
    if weight_lost_kg < WEIGHT_MILESTONE_STEP_KG:
        return None
    m = math.floor(weight_lost_kg / WEIGHT_MILESTONE_STEP_KG) * WEIGHT_MILESTONE_STEP_KG
    if weight_lost_kg < m + WEIGHT_MILESTONE_WINDOW_KG:
        return m
    return None


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = NotificationRepo(db)

    async def send(
        self,
        user_id: str,
        *,
        type: str,
        title: str,
        message: str,
        action_url: str | None = None,
    ) -> Notification | None:
        # fire-and-forget: the savepoint confines a failed insert to the notification itself
        try:
            async with self.db.begin_nested():
                return await self.repo.add(
                    user_id=user_id, type=type, title=title, message=message, action_url=action_url
                )
        except SQLAlchemyError:
            logger.exception("Failed to store %s notification for user %s", type, user_id)
            return None

    async def daily_log_reminder(self, user_id: str) -> Notification | None:
        return await self.send(
            user_id,
            type="reminder",
            title="Log Your Day",
            message="Don't forget to log your weight, meals, and biofeedback for today!",
            action_url="/daily-log",
        )

    async def phase_ready_for_transition(self, user_id: str, current_phase: str, suggested_phase: str) -> Notification | None:
        return await self.send(
            user_id,
            type="phase_change",
            title="Ready for Next Phase?",
            message=(
                f"Based on your progress in {current_phase}, you may be ready to transition to {suggested_phase}. "
                "Chat with your mentor to discuss."
            ),
            action_url="/chat",
        )

    async def phase_transition_complete(self, user_id: str, new_phase: str) -> Notification | None:
        name = PHASE_NAMES.get(new_phase, new_phase)
        return await self.send(
            user_id,
            type="phase_change",
            title="Phase Transition Complete",
            message=f"You've moved to the {name} phase. Your targets have been updated accordingly.",
            action_url="/",
        )

    async def streak_achievement(self, user_id: str, days: int) -> Notification | None:
        return await self.send(
            user_id,
            type="achievement",
            title=f"{days}-Day Streak!",
            message=f"Amazing consistency! You've been active for {days} days in a row.",
            action_url="/progress",
        )

    async def weight_milestone(self, user_id: str, weight_lost_kg: float) -> Notification | None:
        return await self.send(
            user_id,
            type="achievement",
            title="Weight Milestone Reached!",
            message=f"Congratulations! You've lost {weight_lost_kg:.1f}kg since starting your journey.",
            action_url="/progress",
        )

    async def protein_goal_met(self, user_id: str) -> Notification | None:
        return await self.send(
            user_id,
            type="achievement",
            title="Protein Target Hit!",
            message="Great job hitting your protein goal today! Consistent protein intake supports muscle maintenance.",
            action_url="/nutrition",
        )

    async def check_and_send_notifications(self, user_id: str) -> list[Notification]:
        """Periodic check: logging reminder, logging streak, protein goal and weight milestones."""
        profile = await ProfileRepo(self.db).get(user_id)
        if not profile or not profile.onboarding_completed:
            return []

        sent: list[Notification | None] = []
        now_local = now_in(profile.timezone)
        today = now_local.date()

        logs_repo = DailyLogRepo(self.db)
        logs = await logs_repo.between(user_id, today - dt.timedelta(days=30), today)
        today_log = next((x for x in logs if x.log_date == today), None)

        if today_log is None and now_local.hour >= REMINDER_HOUR:
            sent.append(await self.daily_log_reminder(user_id))

        streak = 0
        for i, log in enumerate(logs):
            if log.log_date != today - dt.timedelta(days=i):
                break
            streak += 1
        if streak in LOGGING_STREAK_MILESTONES:
            sent.append(await self.streak_achievement(user_id, streak))

        if today_log and today_log.protein_grams and profile.protein_grams:
            if today_log.protein_grams >= profile.protein_grams:
                sent.append(await self.protein_goal_met(user_id))

        if profile.current_weight_kg and profile.target_weight_kg:
            weighed = [x for x in logs if x.weight_kg]
            if weighed:
                lost = profile.current_weight_kg - weighed[0].weight_kg
                m = weight_milestone(lost)
                if m is not None:
                    sent.append(await self.weight_milestone(user_id, m))

        return [n for n in sent if n is not None]
