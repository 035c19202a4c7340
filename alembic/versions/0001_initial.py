"""profiles, logs, points ledger, notifications

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("sex", sa.String(length=16), nullable=True),
        sa.Column("height_cm", sa.Float(), nullable=True),
        sa.Column("current_weight_kg", sa.Float(), nullable=True),
        sa.Column("target_weight_kg", sa.Float(), nullable=True),
        sa.Column("activity_level", sa.String(length=32), nullable=True),
        sa.Column("current_phase", sa.String(length=16), nullable=False, server_default="assessment"),
        sa.Column("phase_start_date", sa.Date(), nullable=True),
        sa.Column("maintenance_calories", sa.Integer(), nullable=True),
        sa.Column("target_calories", sa.Integer(), nullable=True),
        sa.Column("protein_grams", sa.Integer(), nullable=True),
        sa.Column("carbs_grams", sa.Integer(), nullable=True),
        sa.Column("fat_grams", sa.Integer(), nullable=True),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_profiles_user_id", "user_profiles", ["user_id"], unique=True)

    op.create_table(
        "daily_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("log_date", sa.Date(), nullable=False),
        sa.Column("weight_kg", sa.Float(), nullable=True),
        sa.Column("calories_consumed", sa.Integer(), nullable=True),
        sa.Column("protein_grams", sa.Float(), nullable=True),
        sa.Column("carbs_grams", sa.Float(), nullable=True),
        sa.Column("fat_grams", sa.Float(), nullable=True),
        sa.Column("steps", sa.Integer(), nullable=True),
        sa.Column("workout_completed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("workout_type", sa.String(length=32), nullable=True),
        sa.Column("workout_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("sleep_hours", sa.Float(), nullable=True),
        sa.Column("sleep_quality", sa.Integer(), nullable=True),
        sa.Column("energy_level", sa.Integer(), nullable=True),
        sa.Column("stress_level", sa.Integer(), nullable=True),
        sa.Column("mood_rating", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "log_date", name="uq_daily_logs_user_date"),
    )
    op.create_index("ix_daily_logs_user_id", "daily_logs", ["user_id"], unique=False)
    op.create_index("ix_daily_logs_log_date", "daily_logs", ["log_date"], unique=False)

    op.create_table(
        "exercise_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("log_date", sa.Date(), nullable=False),
        sa.Column("exercise_name", sa.String(length=128), nullable=False),
        sa.Column("set_details_json", sa.Text(), nullable=True),
        sa.Column("completed_sets", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("prescribed_sets", sa.Integer(), nullable=True),
        sa.Column("prescribed_reps", sa.String(length=16), nullable=True),
        sa.Column("prescribed_rir", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_exercise_logs_user_id", "exercise_logs", ["user_id"], unique=False)
    op.create_index("ix_exercise_logs_log_date", "exercise_logs", ["log_date"], unique=False)
    op.create_index("ix_exercise_logs_user_date", "exercise_logs", ["user_id", "log_date"], unique=False)

    op.create_table(
        "user_points",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("lifetime_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("spendable_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("daily_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("weekly_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("monthly_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_points_user_id", "user_points", ["user_id"], unique=True)

    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("action_type", sa.String(length=32), nullable=False),
        sa.Column("base_points", sa.Integer(), nullable=False),
        sa.Column("multiplier", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column("total_points", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("reference_id", sa.String(length=128), nullable=True),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "reference_id", "action_type", name="uq_point_tx_reference"),
    )
    op.create_index("ix_point_transactions_user_id", "point_transactions", ["user_id"], unique=False)
    op.create_index("ix_point_tx_user_created", "point_transactions", ["user_id", "created_at"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("title", sa.String(length=128), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("action_url", sa.String(length=128), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_point_tx_user_created", table_name="point_transactions")
    op.drop_index("ix_point_transactions_user_id", table_name="point_transactions")
    op.drop_table("point_transactions")

    op.drop_index("ix_user_points_user_id", table_name="user_points")
    op.drop_table("user_points")

    op.drop_index("ix_exercise_logs_user_date", table_name="exercise_logs")
    op.drop_index("ix_exercise_logs_log_date", table_name="exercise_logs")
    op.drop_index("ix_exercise_logs_user_id", table_name="exercise_logs")
    op.drop_table("exercise_logs")

    op.drop_index("ix_daily_logs_log_date", table_name="daily_logs")
    op.drop_index("ix_daily_logs_user_id", table_name="daily_logs")
    op.drop_table("daily_logs")

    op.drop_index("ix_user_profiles_user_id", table_name="user_profiles")
    op.drop_table("user_profiles")
