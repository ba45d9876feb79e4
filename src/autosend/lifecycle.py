"""Lifecycle helpers wiring the tick loop for FastAPI startup."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from .domain.models import TickReport
from .domain.schedule import truncate_to_minute
from .scheduling.tick_processor import TickProcessor


logger = structlog.get_logger(__name__)

MAX_CATCH_UP_MINUTES = 10


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(now: datetime) -> datetime:
    return now.replace(tzinfo=timezone.utc) if now.tzinfo is None else now


async def tick_once(
    processor: TickProcessor,
    *,
    now: datetime | None = None,
) -> TickReport:
    """Run a single tick for the minute containing ``now``."""

    current = now or _default_clock()
    return await processor.process_tick(truncate_to_minute(current))


def pending_minutes(
    last_minute: datetime | None,
    current_minute: datetime,
    *,
    max_catch_up_minutes: int = MAX_CATCH_UP_MINUTES,
) -> list[datetime]:
    """Return the minute starts in ``(last_minute, current_minute]`` still to tick.

    Only the newest ``max_catch_up_minutes + 1`` minutes are returned after a
    long stall; a clock that moved backwards yields nothing.
    """

    if last_minute is None:
        return [current_minute]
    missed = int((current_minute - last_minute) // timedelta(minutes=1))
    if missed <= 0:
        return []
    keep = min(missed, max(0, max_catch_up_minutes) + 1)
    if keep < missed:
        logger.warning(
            "tick.catch_up.truncated",
            last_minute=last_minute.isoformat(),
            current_minute=current_minute.isoformat(),
            dropped_minutes=missed - keep,
        )
    return [current_minute - timedelta(minutes=offset) for offset in range(keep - 1, -1, -1)]


def seconds_until_next_minute(now: datetime) -> float:
    boundary = truncate_to_minute(now) + timedelta(minutes=1)
    return (boundary - now).total_seconds()


async def run_periodic_auto_send(
    *,
    processor: TickProcessor,
    shutdown_event: asyncio.Event,
    interval_seconds: float = 60.0,
    clock: Callable[[], datetime] | None = None,
    max_catch_up_minutes: int = MAX_CATCH_UP_MINUTES,
) -> None:
    """Tick once per wall-clock minute until ``shutdown_event`` is set.

    The loop sleeps until the next minute boundary (never longer than
    ``interval_seconds``) and ticks every minute that elapsed since the last
    processed one, so a slow tick or a late wake-up does not skip slots.
    """

    interval = max(1.0, float(interval_seconds))
    tick = clock or _default_clock
    last_minute: datetime | None = None
    while not shutdown_event.is_set():
        current_minute = truncate_to_minute(_as_utc(tick()))
        for minute in pending_minutes(
            last_minute, current_minute, max_catch_up_minutes=max_catch_up_minutes
        ):
            if shutdown_event.is_set():
                break
            try:
                await tick_once(processor, now=minute)
            except Exception:
                logger.exception("tick.iteration.failed", tick_at=minute.isoformat())
            last_minute = minute
        delay = min(interval, seconds_until_next_minute(_as_utc(tick())))
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            continue


__all__ = [
    "MAX_CATCH_UP_MINUTES",
    "pending_minutes",
    "run_periodic_auto_send",
    "seconds_until_next_minute",
    "tick_once",
]
