from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, Date, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sex: Mapped[str | None] = mapped_column(String(16), nullable=True)  # male/female
    height_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    target_weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    # sedentary/lightly_active/moderately_active/very_active
    activity_level: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # assessment/recovery/recomp/cutting
    current_phase: Mapped[str] = mapped_column(String(16), default="assessment")
    phase_start_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    # targets (snapshot of the last calculation)
    maintenance_calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    protein_grams: Mapped[int | None] = mapped_column(Integer, nullable=True)
    carbs_grams: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fat_grams: Mapped[int | None] = mapped_column(Integer, nullable=True)

    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class DailyLog(Base):
    __tablename__ = "daily_logs"
    __table_args__ = (UniqueConstraint("user_id", "log_date", name="uq_daily_logs_user_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    log_date: Mapped[dt.date] = mapped_column(Date, index=True)

    weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)

    calories_consumed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    protein_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    carbs_grams: Mapped[float | None] = mapped_column(Float, nullable=True)
    fat_grams: Mapped[float | None] = mapped_column(Float, nullable=True)

    steps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    workout_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    workout_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    workout_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # biofeedback, 1-10 scales
    sleep_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    sleep_quality: Mapped[int | None] = mapped_column(Integer, nullable=True)
    energy_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stress_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mood_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)


class ExerciseLog(Base):
    __tablename__ = "exercise_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    log_date: Mapped[dt.date] = mapped_column(Date, index=True)
    exercise_name: Mapped[str] = mapped_column(String(128))

    # ordered list of {"reps": int, "weight_kg": float|null}, JSON string
    set_details_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_sets: Mapped[int] = mapped_column(Integer, default=0)

    prescribed_sets: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prescribed_reps: Mapped[str | None] = mapped_column(String(16), nullable=True)  # "8-12"
    prescribed_rir: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)


class UserPoints(Base):
    __tablename__ = "user_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    lifetime_points: Mapped[int] = mapped_column(Integer, default=0)
    spendable_points: Mapped[int] = mapped_column(Integer, default=0)
    daily_points: Mapped[int] = mapped_column(Integer, default=0)
    weekly_points: Mapped[int] = mapped_column(Integer, default=0)
    monthly_points: Mapped[int] = mapped_column(Integer, default=0)

    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class PointTransaction(Base):
    """Append-only audit record of one award."""

    __tablename__ = "point_transactions"
    # NULL reference ids never collide, so unreferenced awards are not deduplicated
    __table_args__ = (
        UniqueConstraint("user_id", "reference_id", "action_type", name="uq_point_tx_reference"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)

    action_type: Mapped[str] = mapped_column(String(32))
    base_points: Mapped[int] = mapped_column(Integer)
    multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    total_points: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(Text)

    reference_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)

    type: Mapped[str] = mapped_column(String(16))  # reminder/insight/phase_change/achievement
    title: Mapped[str] = mapped_column(String(128))
    message: Mapped[str] = mapped_column(Text)
    action_url: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)


Index("ix_exercise_logs_user_date", ExerciseLog.user_id, ExerciseLog.log_date)
Index("ix_point_tx_user_created", PointTransaction.user_id, PointTransaction.created_at)
Index("ix_notifications_user_created", Notification.user_id, Notification.created_at)
