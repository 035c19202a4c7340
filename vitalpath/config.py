from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    db_path: str = Field(default="data/vitalpath.sqlite3", validation_alias="DB_PATH")
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

    # IANA name; used when a user has no timezone of their own
    default_timezone: str = Field(default="UTC", validation_alias="DEFAULT_TIMEZONE")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Trailing window (days) of daily logs used for a phase evaluation
    phase_window_days: int = Field(default=28, validation_alias="PHASE_WINDOW_DAYS")
    analytics_window_days: int = Field(default=90, validation_alias="ANALYTICS_WINDOW_DAYS")
    weekly_trend_weeks: int = Field(default=8, validation_alias="WEEKLY_TREND_WEEKS")

    leaderboard_limit: int = Field(default=10, validation_alias="LEADERBOARD_LIMIT")
    # Fallback when a profile has no calorie target yet (adherence calc)
    default_target_calories: int = Field(default=2000, validation_alias="DEFAULT_TARGET_CALORIES")


settings = Settings()
