"""Pydantic schemas for the channel schedule API."""

from __future__ import annotations

from pydantic import BaseModel, Field

MAX_CUSTOM_PROMPT_LENGTH = 15_000


class ChannelScheduleItem(BaseModel):
    id: str
    index: int = Field(..., ge=1)
    name: str
    times: list[str]
    platform: str
    is_automation_enabled: bool


class ChannelScheduleUpdateRequest(BaseModel):
    times: list[str | None]


class ChannelScheduleUpdateResponse(BaseModel):
    id: str
    name: str
    times: list[str]
    platform: str
    is_automation_enabled: bool


class ChannelReorderRequest(BaseModel):
    ordered_ids: list[str]


class CustomPromptRequest(BaseModel):
    prompt: str = ""
    title: str | None = None


class CustomPromptResponse(BaseModel):
    job_id: str
    status: str = "queued"
    message_id: str | None = None
    chat_id: str | None = None


__all__ = [
    "ChannelReorderRequest",
    "ChannelScheduleItem",
    "ChannelScheduleUpdateRequest",
    "ChannelScheduleUpdateResponse",
    "CustomPromptRequest",
    "CustomPromptResponse",
    "MAX_CUSTOM_PROMPT_LENGTH",
]
