"""Boundary helpers for schedule records.

Slot times are stored as local ``HH:MM`` strings and interpreted in the
channel's timezone. Everything the classifier and the tick processor compare
is an integer minute of day in ``[0, 1440)``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MINUTES_PER_DAY = 24 * 60
DEFAULT_ACTIVE_WINDOW_MINUTES = 11
MIN_ACTIVE_WINDOW_MINUTES = 1
MAX_ACTIVE_WINDOW_MINUTES = 60
MAX_SLOTS_PER_CHANNEL = 10
# Monday to Friday, Sunday-first.
DEFAULT_NEW_SLOT_DAYS = frozenset({1, 2, 3, 4, 5})

_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")

logger = logging.getLogger(__name__)


def parse_slot_time(value: object) -> int | None:
    """Return minutes since midnight for ``"HH:MM"`` or ``None`` if malformed."""

    if not isinstance(value, str):
        return None
    match = _TIME_PATTERN.match(value.strip())
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def normalize_slot_times(values: Iterable[object]) -> list[str]:
    """Validate submitted slot times and return them sorted without duplicates.

    Blank and non-string entries are ignored. A malformed time or more than
    :data:`MAX_SLOTS_PER_CHANNEL` distinct times raises :class:`ValueError`.
    """

    times: list[str] = []
    for value in values:
        if not isinstance(value, str) or not value.strip():
            continue
        value = value.strip()
        if parse_slot_time(value) is None:
            raise ValueError(f"Invalid time '{value}', expected HH:MM within 00:00-23:59")
        if value not in times:
            times.append(value)
    if len(times) > MAX_SLOTS_PER_CHANNEL:
        raise ValueError(f"At most {MAX_SLOTS_PER_CHANNEL} slots per channel")
    return sorted(times)


def format_minutes(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def clamp_active_window(value: object) -> int:
    """Clamp the active window into ``[1, 60]`` (11 when absent or invalid)."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_ACTIVE_WINDOW_MINUTES
    if value != value or value == 0:  # NaN or unset
        return DEFAULT_ACTIVE_WINDOW_MINUTES
    return int(max(MIN_ACTIVE_WINDOW_MINUTES, min(MAX_ACTIVE_WINDOW_MINUTES, value)))


def normalize_days(values: Iterable[object] | None) -> frozenset[int]:
    """Keep Sunday-first weekday indices ``0..6``."""

    if values is None:
        return frozenset()
    days: set[int] = set()
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, int) and 0 <= value <= 6:
            days.add(value)
    return frozenset(days)


def sunday_first_weekday(day: date) -> int:
    return day.isoweekday() % 7


def resolve_timezone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """Return the zone for ``name``, falling back to ``default``."""

    for candidate in (name, default):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back", candidate)
    return ZoneInfo("UTC")


@dataclass(frozen=True, slots=True)
class LocalClock:
    """An instant seen from a channel's timezone at minute granularity."""

    minute_of_day: int
    weekday: int
    date: date
    day_start_utc: datetime


def local_clock(now: datetime, tz: ZoneInfo) -> LocalClock:
    """Project ``now`` into ``tz``; naive instants are taken as UTC."""

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)
    local_day = local.date()
    day_start = datetime.combine(local_day, time.min, tzinfo=tz)
    return LocalClock(
        minute_of_day=local.hour * 60 + local.minute,
        weekday=sunday_first_weekday(local_day),
        date=local_day,
        day_start_utc=day_start.astimezone(timezone.utc),
    )


def minutes_since_midnight(now: datetime, tz: ZoneInfo) -> int:
    return local_clock(now, tz).minute_of_day


def local_date_of(instant: datetime, tz: ZoneInfo) -> date:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date()


def truncate_to_minute(now: datetime) -> datetime:
    return now.replace(second=0, microsecond=0)


def minutes_until(target: int, now: int) -> int:
    """Minutes from ``now`` to the next occurrence of ``target`` (tomorrow if passed)."""

    if target > now:
        return target - now
    return target + MINUTES_PER_DAY - now


def minutes_since(end: int, now: int) -> int:
    return (now - end) % MINUTES_PER_DAY


__all__ = [
    "DEFAULT_ACTIVE_WINDOW_MINUTES",
    "DEFAULT_NEW_SLOT_DAYS",
    "LocalClock",
    "MAX_ACTIVE_WINDOW_MINUTES",
    "MAX_SLOTS_PER_CHANNEL",
    "MINUTES_PER_DAY",
    "MIN_ACTIVE_WINDOW_MINUTES",
    "clamp_active_window",
    "format_minutes",
    "local_clock",
    "local_date_of",
    "minutes_since",
    "minutes_since_midnight",
    "minutes_until",
    "normalize_days",
    "normalize_slot_times",
    "parse_slot_time",
    "resolve_timezone",
    "sunday_first_weekday",
    "truncate_to_minute",
]
