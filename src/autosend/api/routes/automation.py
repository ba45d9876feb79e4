"""Routes exposing automation state of a tenant's channels."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...config import AppConfig
from ...domain.automation_state import classify_fleet
from ...domain.schedule import format_minutes, local_clock
from ...repositories.interfaces import ScheduleStore
from ...scheduling.reporting import RecentReportsSink
from ..dependencies import (
    get_clock,
    get_config,
    get_report_history,
    get_store,
    require_owner_id,
)

router = APIRouter(prefix="/api/automation", tags=["automation"])


def _bad_request(details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"status": "error", "details": details},
    )


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise _bad_request(f"Unknown timezone '{name}'") from None


@router.get("/status")
def automation_status(
    owner_id: str = Depends(require_owner_id),
    tz: str | None = Query(default=None, description="IANA zone for the current minute."),
    store: ScheduleStore = Depends(get_store),
    config: AppConfig = Depends(get_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    """Classify the tenant's channels at the current minute."""
    zone_name = tz or config.settings.default_timezone
    zone = _zone(zone_name)
    now_minutes = local_clock(clock(), zone).minute_of_day

    channels = store.list_channels(owner_id)
    fleet = classify_fleet(channels, now_minutes)
    return {
        "owner_id": owner_id,
        "timezone": zone_name,
        "now": format_minutes(now_minutes),
        "now_minutes": now_minutes,
        "channels": [fleet.states[channel.id].as_dict() for channel in channels],
        "current": fleet.current.as_dict() if fleet.current else None,
        "next": fleet.next.as_dict() if fleet.next else None,
        "previous": fleet.previous.as_dict() if fleet.previous else None,
    }


@router.get("/last-tick")
def last_tick(
    history: RecentReportsSink = Depends(get_report_history),
) -> dict[str, Any]:
    """Return the most recent tick report held in memory."""
    report = history.latest
    return {"report": report.as_dict() if report is not None else None}
