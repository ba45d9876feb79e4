"""Request-scoped accessors for services stored on ``app.state``."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from fastapi import Header, HTTPException, Request, status

from ..config import AppConfig
from ..repositories.interfaces import ScheduleStore
from ..scheduling.reporting import RecentReportsSink
from ..scheduling.tick_processor import TickProcessor


def get_config(request: Request) -> AppConfig:
    try:
        return request.app.state.config  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("AppConfig is not configured") from exc


def get_store(request: Request) -> ScheduleStore:
    try:
        return request.app.state.schedule_store  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("ScheduleStore is not configured") from exc


def get_tick_processor(request: Request) -> TickProcessor:
    try:
        return request.app.state.tick_processor  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("TickProcessor is not configured") from exc


def get_report_history(request: Request) -> RecentReportsSink:
    try:
        return request.app.state.report_history  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("Report history is not configured") from exc


def require_owner_id(
    owner_id: str | None = Header(default=None, alias="X-Owner-Id"),
) -> str:
    """Return the tenant named by the ``X-Owner-Id`` header or reject the call."""
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "details": "X-Owner-Id header is required"},
        )
    return owner_id


def get_clock(request: Request) -> Callable[[], datetime]:
    try:
        return request.app.state.clock  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("Clock is not configured") from exc


__all__ = [
    "get_clock",
    "get_config",
    "get_report_history",
    "get_store",
    "get_tick_processor",
    "require_owner_id",
]
