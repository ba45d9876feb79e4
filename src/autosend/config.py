"""Application configuration builder.

Settings are read from ``AUTOSEND_*`` environment variables. The defaults
target a single-process deployment: SQLite storage, a built-in once-per-minute
tick loop and a 25 second deadline for every external call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .db.db_init import init_db

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class AppSettings(BaseSettings):
    """Pydantic settings container for the scheduler and its collaborators."""

    model_config = SettingsConfigDict(env_prefix="AUTOSEND_")

    database_url: str = Field(
        default="sqlite:///autosend.db",
        description="SQLAlchemy URL of the channel store.",
    )
    default_timezone: str = Field(
        default="UTC",
        description="IANA zone used for channels without an explicit timezone.",
    )
    tick_interval_seconds: float = Field(
        default=60.0,
        ge=1.0,
        description="Upper bound on the tick loop sleep; the loop wakes at every minute boundary.",
    )
    max_catch_up_minutes: int = Field(
        default=10,
        ge=0,
        description="Missed minutes the tick loop replays after a stall.",
    )
    enable_cron_scheduler: bool = Field(
        default=True,
        description="Start the built-in tick loop on application startup.",
    )
    max_concurrent_tenants: int = Field(
        default=4,
        ge=1,
        description="Upper bound on tenants processed in parallel within a tick.",
    )
    generation_timeout_seconds: float = Field(
        default=25.0,
        gt=0.0,
        description="Deadline for a single generation invocation.",
    )
    dispatch_timeout_seconds: float = Field(
        default=25.0,
        gt=0.0,
        description="Deadline for a single messaging dispatch.",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the chat completions endpoint.",
    )
    openai_model: str = Field(default="gpt-4o-mini")
    openai_api_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
    )
    telegram_bot_token: str | None = Field(
        default=None,
        description="Bot token enabling the Telegram dispatch collaborator.",
    )
    telegram_default_chat_id: str | None = Field(
        default=None,
        description="Chat used when a channel has no dispatch chat of its own.",
    )
    cron_secret: str | None = Field(
        default=None,
        description="Shared secret required by the manual tick endpoint.",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        name = value.strip().upper()
        if name not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return name


@dataclass(slots=True)
class AppConfig:
    settings: AppSettings
    engine: Engine
    session_factory: sessionmaker[Session]


def load_config(settings: AppSettings | None = None) -> AppConfig:
    """Load configuration from environment and prepare the database."""
    settings = settings or AppSettings()
    engine_kwargs: dict[str, Any] = {}
    if settings.database_url.startswith("sqlite"):
        # Store calls run in worker threads.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in settings.database_url:
            engine_kwargs["poolclass"] = StaticPool
    engine = create_engine(settings.database_url, future=True, **engine_kwargs)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine)

    return AppConfig(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
    )


__all__ = ["AppConfig", "AppSettings", "load_config"]
