"""Chat completions driver producing scripts and video prompts for channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from ..domain.models import Channel, GenerationMode, GenerationResult
from ..exceptions import GenerationError, GenerationTimeoutError
from .base import GenerationProvider
from .prompts import (
    AUTO_GENERATE_USER_PROMPT,
    build_auto_generate_prompt,
    build_video_prompt_instructions,
    clean_video_prompt,
    parse_idea_scripts,
)

logger = logging.getLogger(__name__)

OPENAI_CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"


@dataclass(slots=True)
class _Completion:
    content: str
    response_id: str | None


@dataclass(slots=True)
class OpenAIPromptGenerator(GenerationProvider):
    """Generate an idea with scripts, then shape it per the channel's mode."""

    api_key: str | None
    model: str = "gpt-4o-mini"
    api_url: str = OPENAI_CHAT_COMPLETIONS_URL
    timeout_seconds: float = 25.0
    log: logging.Logger = field(default_factory=lambda: logger)
    provider_id: str = "openai"

    async def generate(
        self, channel: Channel, context: Mapping[str, Any]
    ) -> GenerationResult:
        self.log.info(
            "openai.generate.start channel_id=%s mode=%s slot_id=%s",
            channel.id,
            channel.generation_mode.value,
            context.get("slot_id"),
        )
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_auto_generate_prompt(channel)},
                {"role": "user", "content": AUTO_GENERATE_USER_PROMPT},
            ],
            "temperature": 0.9,
            "max_tokens": 2000,
        }
        if "gpt-4" in self.model or "o3" in self.model:
            body["response_format"] = {"type": "json_object"}

        completion = await self._complete(body)
        parsed = parse_idea_scripts(completion.content)
        idea = parsed.idea.strip()

        mode = channel.generation_mode
        if mode is GenerationMode.VIDEO_PROMPT_ONLY:
            if not idea:
                raise GenerationError("Model reply does not contain an idea")
            user = f'Create a VIDEO_PROMPT for the idea: "{idea}"'
            content = await self._video_prompt(channel, user)
        elif mode is GenerationMode.PROMPT:
            if not parsed.scripts:
                raise GenerationError("Model reply does not contain a script for prompt mode")
            user = f"Create a VIDEO_PROMPT for the following script:\n\n{parsed.scripts[0]}"
            content = await self._video_prompt(channel, user)
        else:
            content = (parsed.scripts[0] if parsed.scripts else "") or idea

        content = content.strip()
        if not content:
            raise GenerationError("Model reply produced an empty prompt")

        self.log.info(
            "openai.generate.success channel_id=%s mode=%s prompt_len=%s",
            channel.id,
            mode.value,
            len(content),
        )
        return GenerationResult(
            content=content,
            job_reference=completion.response_id,
            title=idea or None,
        )

    async def _video_prompt(self, channel: Channel, user_prompt: str) -> str:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_video_prompt_instructions(channel)},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 1500,
        }
        completion = await self._complete(body)
        return clean_video_prompt(completion.content)

    async def _complete(self, body: dict[str, Any]) -> _Completion:
        if not self.api_key:
            raise GenerationError("OpenAI API key is not configured")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._post(self.api_url, headers=headers, json=body)
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(
                f"OpenAI request timed out after {self.timeout_seconds:.1f}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"OpenAI HTTP error: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError("OpenAI response is not valid JSON") from exc

        if response.status_code != 200:
            detail = _extract_error(data) or f"status {response.status_code}"
            self.log.error(
                "openai.request.failed status=%s detail=%s",
                response.status_code,
                detail,
            )
            raise GenerationError(f"OpenAI request failed: {detail}")

        choices = data.get("choices") or []
        message = (choices[0] or {}).get("message") if choices else None
        content = (message or {}).get("content")
        if not content:
            raise GenerationError("OpenAI returned an empty response")
        return _Completion(content=str(content), response_id=data.get("id"))

    async def _post(
        self, url: str, *, headers: dict[str, str], json: dict[str, Any]
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.post(url, headers=headers, json=json)


def _extract_error(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return str(message).strip() if message else None
    if isinstance(error, str):
        return error
    return None


__all__ = ["OpenAIPromptGenerator", "OPENAI_CHAT_COMPLETIONS_URL"]
