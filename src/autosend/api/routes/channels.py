"""Routes managing a tenant's channel schedules and manual runs."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from ...domain.models import Channel
from ...domain.schedule import normalize_slot_times
from ...exceptions import (
    CollaboratorError,
    ConfigurationError,
    DispatchTimeoutError,
    NotFoundError,
)
from ...providers.prompts import PLATFORM_NAMES
from ...repositories.interfaces import ScheduleStore
from ...scheduling.tick_processor import TickProcessor
from ..dependencies import get_clock, get_store, get_tick_processor, require_owner_id
from ..schemas import (
    MAX_CUSTOM_PROMPT_LENGTH,
    ChannelReorderRequest,
    ChannelScheduleItem,
    ChannelScheduleUpdateRequest,
    ChannelScheduleUpdateResponse,
    CustomPromptRequest,
    CustomPromptResponse,
)

router = APIRouter(prefix="/api/channels", tags=["channels"])

logger = structlog.get_logger(__name__)

DEFAULT_CHANNEL_NAME = "Untitled"


def _bad_request(details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"status": "error", "details": details},
    )


def _not_found(channel_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"status": "error", "details": f"Channel '{channel_id}' not found"},
    )


def load_owned_channel(
    channel_id: str,
    owner_id: str = Depends(require_owner_id),
    store: ScheduleStore = Depends(get_store),
) -> Channel:
    """Resolve ``channel_id`` within the caller's tenant; other tenants see a 404."""
    try:
        channel = store.get_channel(channel_id)
    except NotFoundError:
        raise _not_found(channel_id) from None
    if channel.owner_id != owner_id:
        raise _not_found(channel_id)
    return channel


def _display_name(channel: Channel) -> str:
    return channel.name or DEFAULT_CHANNEL_NAME


def _platform_name(channel: Channel) -> str:
    return PLATFORM_NAMES.get(channel.platform, channel.platform.value)


def _enabled_times(channel: Channel) -> list[str]:
    return sorted(
        slot.time for slot in channel.slots if slot.enabled and slot.minute_of_day is not None
    )


@router.get("/schedule")
def list_channel_schedules(
    owner_id: str = Depends(require_owner_id),
    store: ScheduleStore = Depends(get_store),
) -> list[ChannelScheduleItem]:
    """List the tenant's channels in display order with their enabled slot times."""
    channels = store.list_channels(owner_id)
    return [
        ChannelScheduleItem(
            id=channel.id,
            index=position,
            name=_display_name(channel),
            times=_enabled_times(channel),
            platform=_platform_name(channel),
            is_automation_enabled=channel.automation_enabled,
        )
        for position, channel in enumerate(channels, start=1)
    ]


@router.patch("/reorder")
def reorder_channels(
    payload: ChannelReorderRequest,
    owner_id: str = Depends(require_owner_id),
    store: ScheduleStore = Depends(get_store),
) -> dict[str, Any]:
    if not payload.ordered_ids:
        raise _bad_request("ordered_ids must be a non-empty list")
    owned = {channel.id: channel for channel in store.list_channels(owner_id)}
    foreign = [channel_id for channel_id in payload.ordered_ids if channel_id not in owned]
    if foreign:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "status": "error",
                "details": f"Channels {', '.join(foreign)} do not belong to the caller",
            },
        )
    for index, channel_id in enumerate(payload.ordered_ids):
        channel = owned[channel_id]
        if channel.order_index != index:
            store.save_channel(replace(channel, order_index=index))
    logger.info("channels.reordered", owner_id=owner_id, count=len(payload.ordered_ids))
    return {"status": "ok", "count": len(payload.ordered_ids)}


@router.patch("/{channel_id}/schedule")
def update_channel_schedule(
    payload: ChannelScheduleUpdateRequest,
    channel: Channel = Depends(load_owned_channel),
    store: ScheduleStore = Depends(get_store),
) -> ChannelScheduleUpdateResponse:
    """Replace the enabled slot times; new slots run Monday to Friday."""
    try:
        times = normalize_slot_times(payload.times)
    except ValueError as exc:
        raise _bad_request(str(exc)) from None

    saved = store.save_channel(
        channel.with_slot_times(times, new_slot_id=lambda: uuid.uuid4().hex)
    )
    logger.info(
        "channel.schedule.updated",
        owner_id=saved.owner_id,
        channel_id=saved.id,
        times=len(times),
    )
    return ChannelScheduleUpdateResponse(
        id=saved.id,
        name=_display_name(saved),
        times=times,
        platform=_platform_name(saved),
        is_automation_enabled=saved.automation_enabled,
    )


@router.post("/{channel_id}/run-custom-prompt", status_code=status.HTTP_202_ACCEPTED)
async def run_custom_prompt(
    payload: CustomPromptRequest,
    channel: Channel = Depends(load_owned_channel),
    processor: TickProcessor = Depends(get_tick_processor),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> CustomPromptResponse:
    """Send an operator-written prompt to the channel's chat right away."""
    prompt = payload.prompt.strip()
    if not prompt:
        raise _bad_request("prompt must not be empty")
    if len(prompt) > MAX_CUSTOM_PROMPT_LENGTH:
        raise _bad_request(f"prompt exceeds {MAX_CUSTOM_PROMPT_LENGTH} characters")

    try:
        receipt = await processor.run_custom_prompt(channel, prompt, title=payload.title)
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "error", "details": str(exc)},
        ) from exc
    except DispatchTimeoutError as exc:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={"status": "timeout", "details": str(exc)},
        ) from exc
    except CollaboratorError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"status": "error", "details": str(exc)},
        ) from exc

    return CustomPromptResponse(
        job_id=f"custom_{channel.id}_{int(clock().timestamp() * 1000)}",
        message_id=receipt.message_id,
        chat_id=receipt.chat_id,
    )
