"""Dependency wiring helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI

from .api.routes import automation_router, channels_router, cron_router, health_router
from .config import AppConfig
from .providers import create_dispatcher, create_generator
from .providers.base import DispatchClient, GenerationProvider
from .repositories.channel_repository import ChannelRepository
from .repositories.interfaces import ScheduleStore
from .scheduling.reporting import CompositeReportSink, LoggingReportSink, RecentReportsSink
from .scheduling.tick_processor import TickProcessor


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def include_routers(
    app: FastAPI,
    config: AppConfig,
    *,
    store: ScheduleStore | None = None,
    generator: GenerationProvider | None = None,
    dispatcher: DispatchClient | None = None,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Build the tick processor, attach services and mount routers."""
    settings = config.settings
    schedule_store = store or ChannelRepository(config.session_factory)
    report_history = RecentReportsSink()
    tick_processor = TickProcessor(
        store=schedule_store,
        generator=generator or create_generator("openai", settings=settings),
        dispatcher=dispatcher if dispatcher is not None else create_dispatcher(settings),
        report_sink=CompositeReportSink([LoggingReportSink(), report_history]),
        default_timezone=settings.default_timezone,
        max_concurrent_tenants=settings.max_concurrent_tenants,
        generation_timeout_seconds=settings.generation_timeout_seconds,
        dispatch_timeout_seconds=settings.dispatch_timeout_seconds,
    )

    app.state.config = config
    app.state.schedule_store = schedule_store
    app.state.report_history = report_history
    app.state.tick_processor = tick_processor
    app.state.clock = clock or _utcnow

    app.include_router(health_router)
    app.include_router(automation_router)
    app.include_router(channels_router)
    app.include_router(cron_router)
