"""Telegram Bot API dispatch of generated content."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..domain.models import Channel, DispatchReceipt
from ..exceptions import DispatchError, DispatchTimeoutError
from .base import DispatchClient

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
# Bot API rejects longer messages.
MAX_MESSAGE_LENGTH = 4096


@dataclass(slots=True)
class TelegramDispatcher(DispatchClient):
    """Send content through ``sendMessage`` to the channel's chat."""

    bot_token: str
    default_chat_id: str | None = None
    api_base: str = TELEGRAM_API_BASE
    timeout_seconds: float = 25.0
    log: logging.Logger = field(default_factory=lambda: logger)

    async def send(self, channel: Channel, content: str) -> DispatchReceipt:
        chat_id = channel.dispatch_chat_id or self.default_chat_id
        if not chat_id:
            raise DispatchError(f"No dispatch chat configured for channel '{channel.id}'")

        text = content if len(content) <= MAX_MESSAGE_LENGTH else content[: MAX_MESSAGE_LENGTH - 1] + "…"
        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        try:
            response = await self._post(url, json={"chat_id": chat_id, "text": text})
        except httpx.TimeoutException as exc:
            raise DispatchTimeoutError(
                f"Telegram request timed out after {self.timeout_seconds:.1f}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise DispatchError(f"Telegram HTTP error: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise DispatchError("Telegram response is not valid JSON") from exc

        if response.status_code != 200 or not data.get("ok"):
            description = data.get("description") or f"status {response.status_code}"
            self.log.error(
                "telegram.send.failed channel_id=%s chat_id=%s detail=%s",
                channel.id,
                chat_id,
                description,
            )
            raise DispatchError(f"Telegram sendMessage failed: {description}")

        result = data.get("result") or {}
        message_id = result.get("message_id")
        self.log.info(
            "telegram.send.success channel_id=%s chat_id=%s message_id=%s",
            channel.id,
            chat_id,
            message_id,
        )
        return DispatchReceipt(
            message_id=str(message_id) if message_id is not None else None,
            chat_id=str(chat_id),
        )

    async def _post(self, url: str, *, json: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.post(url, json=json)


__all__ = ["TelegramDispatcher"]
