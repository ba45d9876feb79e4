"""Prompt construction and reply parsing for channel content generation."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from ..domain.models import Channel, Language, Platform

LANGUAGE_NAMES: dict[Language, str] = {
    Language.RU: "Russian",
    Language.EN: "English",
    Language.KK: "Kazakh",
}

PLATFORM_NAMES: dict[Platform, str] = {
    Platform.YOUTUBE_SHORTS: "YouTube Shorts",
    Platform.TIKTOK: "TikTok",
    Platform.INSTAGRAM_REELS: "Instagram Reels",
    Platform.VK_CLIPS: "VK Clips",
}

AUTO_GENERATE_USER_PROMPT = "Come up with an idea and write scripts for this channel."

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_VIDEO_PROMPT_JSON = re.compile(r"\{[\s\S]*\"videoPrompt\"[\s\S]*:[\s\S]*\"([^\"]+)\"[\s\S]*\}", re.IGNORECASE)
_CODE_FENCE = re.compile(r"```[\w]*\n?")
_PROMPT_PREFIX = re.compile(r"^(VIDEO_PROMPT|Prompt)[:\s]*", re.IGNORECASE)
_IDEA_LINE = re.compile(r"idea[:]\s*(.+?)(?:\n|$)", re.IGNORECASE)
_SCRIPT_HEADER = re.compile(r"script\s*\d+[:]", re.IGNORECASE)


@dataclass(slots=True)
class IdeaScripts:
    idea: str
    scripts: list[str] = field(default_factory=list)


def channel_brief(channel: Channel) -> str:
    """Describe the channel for the system prompt."""

    lines = [
        f"Platform: {PLATFORM_NAMES.get(channel.platform, channel.platform.value)}",
        f"Language: {LANGUAGE_NAMES.get(channel.language, channel.language.value)}",
        f"Target duration: {channel.target_duration_sec} seconds",
        f"Niche: {channel.niche or '-'}",
        f"Audience: {channel.audience or '-'}",
        f"Tone: {channel.tone or '-'}",
        f"Blocked topics: {channel.blocked_topics or '-'}",
    ]
    if channel.extra_notes:
        lines.append(f"Extra notes: {channel.extra_notes}")
    return "\n".join(lines)


def build_auto_generate_prompt(channel: Channel) -> str:
    """System prompt asking for an idea plus scripts as a JSON object."""

    language = LANGUAGE_NAMES.get(channel.language, channel.language.value)
    return (
        "You are a scriptwriter for short vertical videos.\n\n"
        f"{channel_brief(channel)}\n\n"
        f"Write everything in {language}. Never touch blocked topics.\n\n"
        "Response format (JSON):\n"
        "{\n"
        '  "idea": "Short description of the video idea (1-2 sentences)",\n'
        '  "scripts": ["Script 1: detailed description with lines and actions", "Script 2: ..."]\n'
        "}\n\n"
        "Return ONLY valid JSON without additional comments."
    )


def build_video_prompt_instructions(channel: Channel) -> str:
    """System prompt turning an idea or script into a VIDEO_PROMPT."""

    language = LANGUAGE_NAMES.get(channel.language, channel.language.value)
    return (
        "You write prompts for text-to-video models.\n\n"
        f"{channel_brief(channel)}\n\n"
        "VIDEO_PROMPT requirements:\n"
        f'1. Duration: "{channel.target_duration_sec}-second video, vertical 9:16 aspect ratio"\n'
        f'2. Shooting style based on the tone "{channel.tone}"\n'
        "3. Location and setting, season or weather if relevant\n"
        "4. Appearance of the main characters\n"
        "5. Camera movement: static, light handheld or smooth pan\n"
        "6. Key actions per time segment (0-2s, 2-4s, ...)\n"
        f"7. Characters speak {language}; include key lines\n"
        "8. No text overlays, subtitles, logos or watermarks\n\n"
        f"Return ONLY the VIDEO_PROMPT text in {language}, without JSON or comments."
    )


def parse_idea_scripts(text: str) -> IdeaScripts:
    """Parse the JSON reply, falling back to scanning plain text."""

    match = _JSON_OBJECT.search(text)
    if match is not None:
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            scripts = data.get("scripts")
            return IdeaScripts(
                idea=str(data.get("idea") or ""),
                scripts=[str(item) for item in scripts] if isinstance(scripts, list) else [],
            )

    idea_match = _IDEA_LINE.search(text)
    scripts: list[str] = []
    current: list[str] = []
    in_script = False
    for line in (line for line in text.split("\n") if line.strip()):
        if _SCRIPT_HEADER.search(line):
            if current:
                scripts.append("\n".join(current).strip())
            current = [line]
            in_script = True
        elif in_script:
            current.append(line)
    if current:
        scripts.append("\n".join(current).strip())
    return IdeaScripts(
        idea=idea_match.group(1).strip() if idea_match else "",
        scripts=scripts or [text.strip()],
    )


def clean_video_prompt(text: str) -> str:
    """Strip JSON wrappers, code fences and headings from a VIDEO_PROMPT reply."""

    text = text.strip()
    wrapped = _VIDEO_PROMPT_JSON.search(text)
    if wrapped is not None:
        return wrapped.group(1).strip()
    text = _CODE_FENCE.sub("", text).replace("```", "")
    return _PROMPT_PREFIX.sub("", text.strip()).strip()


__all__ = [
    "AUTO_GENERATE_USER_PROMPT",
    "IdeaScripts",
    "build_auto_generate_prompt",
    "build_video_prompt_instructions",
    "channel_brief",
    "clean_video_prompt",
    "parse_idea_scripts",
]
