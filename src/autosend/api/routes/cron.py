"""Manual tick trigger for external schedulers."""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Any, Callable

from fastapi import APIRouter, Depends, Header, HTTPException, status

from ...config import AppConfig
from ...lifecycle import tick_once
from ...scheduling.tick_processor import TickProcessor
from ..dependencies import get_clock, get_config, get_tick_processor

router = APIRouter(prefix="/api/cron", tags=["cron"])


def require_cron_secret(
    cron_secret: str | None = Header(default=None, alias="X-Cron-Secret"),
    config: AppConfig = Depends(get_config),
) -> None:
    expected = config.settings.cron_secret
    if not expected:
        return
    if cron_secret is None or not secrets.compare_digest(cron_secret, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"status": "error", "details": "Invalid cron secret"},
        )


@router.post("/manual-tick", dependencies=[Depends(require_cron_secret)])
async def manual_tick(
    processor: TickProcessor = Depends(get_tick_processor),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    """Run one tick for the current minute and return its report."""
    report = await tick_once(processor, now=clock())
    return report.as_dict()
