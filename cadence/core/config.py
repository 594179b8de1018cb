# cadence/core/config.py
from functools import lru_cache

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime and cover:
    - DB connection
    - Calendar collaborator endpoint and credentials
    - Internal API key for cron-triggered endpoints
    - Recurrence and sweep limits
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Cadence Scheduler"
    APP_ENV: str = Field("local", description="Environment name: local/test/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level (DEBUG, INFO, WARNING, ERROR).")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./cadence.db",
        description="SQLAlchemy-compatible async database URL",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Calendar / video collaborator ---
    CALENDAR_API_BASE_URL: AnyHttpUrl | None = Field(
        default=None,
        description="Base URL of the external calendar/video API.",
    )
    CALENDAR_API_TOKEN: str | None = Field(
        default=None,
        description="Bearer token used when calling the calendar API.",
    )
    CALENDAR_ID: str = Field(
        default="primary",
        description="Calendar in which study-group meetings are created.",
    )
    CALENDAR_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Per-request timeout for calendar API calls.",
    )

    # --- Recurrence ---
    DEFAULT_MEETING_DURATION_MINUTES: int = Field(
        default=60,
        description="Meeting length used when a series is created without one.",
    )
    MAX_RECURRENCE_INTERVAL: int = Field(
        default=99,
        description="Largest accepted recurrence interval (days/weeks/months).",
    )
    MAX_PREVIEW_OCCURRENCES: int = Field(
        default=52,
        description="Upper bound on occurrences returned by the preview endpoint.",
    )

    # --- Advancement sweep ---
    SWEEP_BATCH_SIZE: int = Field(
        default=500,
        description="Maximum number of elapsed series picked up by one sweep.",
    )
    SWEEP_WRITE_RETRIES: int = Field(
        default=3,
        description=(
            "Attempts for a compare-and-swap write when the database raises a "
            "transient error. CAS conflicts are never retried."
        ),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
