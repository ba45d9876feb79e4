"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Callable

import structlog
from fastapi import FastAPI

from .config import AppConfig, load_config
from .dependencies import include_routers
from .lifecycle import run_periodic_auto_send
from .logging import configure_logging
from .providers.base import DispatchClient, GenerationProvider
from .repositories.interfaces import ScheduleStore

logger = structlog.get_logger(__name__)


@contextlib.asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    config: AppConfig = app.state.config
    shutdown_event = asyncio.Event()
    task: asyncio.Task[None] | None = None
    if getattr(app.state, "disable_tick_loop", False):
        logger.info("tick_loop.skipped", reason="disabled via app state")
    elif not config.settings.enable_cron_scheduler:
        logger.info("tick_loop.skipped", reason="disabled via settings")
    else:
        task = asyncio.create_task(
            run_periodic_auto_send(
                processor=app.state.tick_processor,
                shutdown_event=shutdown_event,
                interval_seconds=config.settings.tick_interval_seconds,
                max_catch_up_minutes=config.settings.max_catch_up_minutes,
                clock=app.state.clock,
            ),
            name="auto-send-tick-loop",
        )
        logger.info(
            "tick_loop.started", interval_seconds=config.settings.tick_interval_seconds
        )
    app.state.tick_task = task
    try:
        yield
    finally:
        shutdown_event.set()
        if task is not None:
            try:
                await asyncio.wait_for(task, timeout=5.0)
            except asyncio.TimeoutError:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        await app.state.tick_processor.aclose()
        logger.info("tick_loop.stopped")


def create_app(
    config: AppConfig | None = None,
    *,
    store: ScheduleStore | None = None,
    generator: GenerationProvider | None = None,
    dispatcher: DispatchClient | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    cfg = config or load_config()
    configure_logging(cfg.settings.log_level)
    app = FastAPI(title="Auto-Send Scheduler", lifespan=_lifespan)
    include_routers(
        app,
        cfg,
        store=store,
        generator=generator,
        dispatcher=dispatcher,
        clock=clock,
    )
    return app


app = create_app()
