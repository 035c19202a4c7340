from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import Select, case, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vitalpath.jsonutil import sets_from_json, sets_to_json
from vitalpath.models import DailyLog, ExerciseLog, Notification, PointTransaction, UserPoints, UserProfile
from vitalpath.records import DailyLogRecord, ExerciseLogRecord, SetRecord

LEADERBOARD_PERIODS = ("daily", "weekly", "monthly")


def _dialect_insert(db: AsyncSession):
    """INSERT construct with ON CONFLICT support for the session's backend."""
    name = db.get_bind().dialect.name
    if name == "sqlite":
        return sqlite.insert
    if name == "postgresql":
        return postgresql.insert
    raise NotImplementedError(f"ON CONFLICT inserts are not supported on {name}")


def _period_column(period: str):
    if period == "daily":
        return UserPoints.daily_points
    if period == "weekly":
        return UserPoints.weekly_points
    if period == "monthly":
        return UserPoints.monthly_points
    raise ValueError(f"Unknown leaderboard period: {period!r}")


def daily_log_record(x: DailyLog) -> DailyLogRecord:
    return DailyLogRecord(
        log_date=x.log_date,
        weight_kg=x.weight_kg,
        calories_consumed=x.calories_consumed,
        protein_grams=x.protein_grams,
        carbs_grams=x.carbs_grams,
        fat_grams=x.fat_grams,
        steps=x.steps,
        sleep_hours=x.sleep_hours,
        sleep_quality=x.sleep_quality,
        energy_level=x.energy_level,
        stress_level=x.stress_level,
        mood_rating=x.mood_rating,
        workout_completed=bool(x.workout_completed),
        workout_type=x.workout_type,
        workout_duration_minutes=x.workout_duration_minutes,
    )


def exercise_log_record(x: ExerciseLog) -> ExerciseLogRecord:
    return ExerciseLogRecord(
        exercise_name=x.exercise_name,
        log_date=x.log_date,
        set_details=sets_from_json(x.set_details_json),
        completed_sets=x.completed_sets or 0,
        prescribed_sets=x.prescribed_sets,
        prescribed_reps=x.prescribed_reps,
        prescribed_rir=x.prescribed_rir,
    )


class ProfileRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str) -> UserProfile | None:
        q: Select[tuple[UserProfile]] = select(UserProfile).where(UserProfile.user_id == user_id)
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def create(self, user_id: str, **fields: Any) -> UserProfile:
        p = UserProfile(user_id=user_id, **fields)
        self.db.add(p)
        await self.db.flush()
        return p

    async def update(self, user_id: str, fields: dict[str, Any]) -> UserProfile | None:
        p = await self.get(user_id)
        if not p:
            return None
        for k, v in fields.items():
            setattr(p, k, v)
        await self.db.flush()
        return p


class DailyLogRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str, log_date: dt.date) -> DailyLog | None:
        q: Select[tuple[DailyLog]] = select(DailyLog).where(DailyLog.user_id == user_id).where(DailyLog.log_date == log_date)
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def upsert(self, *, user_id: str, log_date: dt.date, **fields: Any) -> DailyLog:
        """Set the given fields on the (user, date) row; other fields are left alone."""
        d = await self.get(user_id, log_date)
        if not d:
            d = DailyLog(user_id=user_id, log_date=log_date)
            self.db.add(d)
        for k, v in fields.items():
            setattr(d, k, v)
        await self.db.flush()
        return d

    async def between(
        self,
        user_id: str,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> list[DailyLogRecord]:
        """Daily logs in [start, end], most recent first."""
        q = select(DailyLog).where(DailyLog.user_id == user_id)
        if start is not None:
            q = q.where(DailyLog.log_date >= start)
        if end is not None:
            q = q.where(DailyLog.log_date <= end)
        q = q.order_by(DailyLog.log_date.desc())
        res = await self.db.execute(q)
        return [daily_log_record(x) for x in res.scalars().all()]


class ExerciseLogRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        *,
        user_id: str,
        log_date: dt.date,
        exercise_name: str,
        sets: list[SetRecord] | None,
        completed_sets: int | None = None,
        prescribed_sets: int | None = None,
        prescribed_reps: str | None = None,
        prescribed_rir: int | None = None,
    ) -> ExerciseLog:
        e = ExerciseLog(
            user_id=user_id,
            log_date=log_date,
            exercise_name=exercise_name,
            set_details_json=sets_to_json(sets),
            completed_sets=completed_sets if completed_sets is not None else len(sets or []),
            prescribed_sets=prescribed_sets,
            prescribed_reps=prescribed_reps,
            prescribed_rir=prescribed_rir,
        )
        self.db.add(e)
        await self.db.flush()
        return e

    async def between(self, user_id: str, start: dt.date, end: dt.date) -> list[ExerciseLogRecord]:
        q = (
            select(ExerciseLog)
            .where(ExerciseLog.user_id == user_id)
            .where(ExerciseLog.log_date >= start)
            .where(ExerciseLog.log_date <= end)
            .order_by(ExerciseLog.log_date.asc(), ExerciseLog.id.asc())
        )
        res = await self.db.execute(q)
        return [exercise_log_record(x) for x in res.scalars().all()]


class PointsRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str) -> UserPoints | None:
        q: Select[tuple[UserPoints]] = (
            select(UserPoints)
            .where(UserPoints.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> UserPoints:
        """Create the all-zero ledger unless another writer already did."""
        stmt = _dialect_insert(self.db)(UserPoints).values(user_id=user_id).on_conflict_do_nothing(
            index_elements=[UserPoints.user_id]
        )
        await self.db.execute(stmt)
        p = await self.get(user_id)
        if p is None:
            raise LookupError(f"Points ledger for user {user_id} was not created")
        return p

    async def apply_award(
        self,
        user_id: str,
        *,
        total_points: int,
        current_streak: int,
        last_activity_date: dt.date,
    ) -> UserPoints:
        """Increment every counter in one UPDATE so concurrent awards cannot lose points."""
        stmt = (
            update(UserPoints)
            .where(UserPoints.user_id == user_id)
            .values(
                lifetime_points=UserPoints.lifetime_points + total_points,
                spendable_points=UserPoints.spendable_points + total_points,
                daily_points=UserPoints.daily_points + total_points,
                weekly_points=UserPoints.weekly_points + total_points,
                monthly_points=UserPoints.monthly_points + total_points,
                current_streak=current_streak,
                longest_streak=case(
                    (UserPoints.longest_streak < current_streak, current_streak),
                    else_=UserPoints.longest_streak,
                ),
                last_activity_date=last_activity_date,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        p = await self.get(user_id)
        if p is None:
            raise LookupError(f"No points ledger for user {user_id}")
        return p

    async def leaderboard(self, period: str, limit: int = 10) -> list[dict[str, Any]]:
        col = _period_column(period)
        q = (
            select(UserPoints.user_id, UserProfile.display_name, col)
            .outerjoin(UserProfile, UserProfile.user_id == UserPoints.user_id)
            .where(col > 0)
            .order_by(col.desc(), UserPoints.user_id.asc())
            .limit(limit)
        )
        res = await self.db.execute(q)
        return [
            {"rank": i, "user_id": uid, "display_name": name, "points": pts}
            for i, (uid, name, pts) in enumerate(res.all(), start=1)
        ]

    async def reset_period(self, period: str) -> int:
        col = _period_column(period)
        stmt = update(UserPoints).values({col.key: 0}).execution_options(synchronize_session=False)
        res = await self.db.execute(stmt)
        return res.rowcount or 0


class PointTransactionRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_reference(self, user_id: str, reference_id: str, action_type: str) -> PointTransaction | None:
        q: Select[tuple[PointTransaction]] = (
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .where(PointTransaction.reference_id == reference_id)
            .where(PointTransaction.action_type == action_type)
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def add(
        self,
        *,
        user_id: str,
        action_type: str,
        base_points: int,
        multiplier: float,
        total_points: int,
        description: str,
        reference_id: str | None = None,
        reference_type: str | None = None,
    ) -> PointTransaction | None:
        """Insert one award; None when (user, reference, action) was already recorded."""
        t = PointTransaction(
            user_id=user_id,
            action_type=action_type,
            base_points=base_points,
            multiplier=multiplier,
            total_points=total_points,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(t)
        except IntegrityError:
            return None
        return t

    async def last(self, user_id: str, limit: int = 20) -> list[PointTransaction]:
        q = (
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .limit(limit)
        )
        res = await self.db.execute(q)
        return list(res.scalars().all())


class NotificationRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        *,
        user_id: str,
        type: str,
        title: str,
        message: str,
        action_url: str | None = None,
    ) -> Notification:
        n = Notification(user_id=user_id, type=type, title=title, message=message, action_url=action_url, is_read=False)
        self.db.add(n)
        await self.db.flush()
        return n

    async def for_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        q = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            q = q.where(Notification.is_read == False)  # noqa: E712
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        res = await self.db.execute(q)
        return list(res.scalars().all())
