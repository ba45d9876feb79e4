"""Domain models for the auto-send scheduler.

Schedule records are frozen dataclasses: a read from the store yields an
immutable snapshot, and the only field the scheduler ever changes
(``last_fired_at``) is replaced through :func:`dataclasses.replace` rather than
mutated in place. Result types for classification and tick processing live
here as well so that adapters and the HTTP layer share one vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Sequence

from ..schedule import DEFAULT_ACTIVE_WINDOW_MINUTES, DEFAULT_NEW_SLOT_DAYS, parse_slot_time


class Platform(str, Enum):
    YOUTUBE_SHORTS = "YOUTUBE_SHORTS"
    TIKTOK = "TIKTOK"
    INSTAGRAM_REELS = "INSTAGRAM_REELS"
    VK_CLIPS = "VK_CLIPS"


class Language(str, Enum):
    RU = "ru"
    EN = "en"
    KK = "kk"


class GenerationMode(str, Enum):
    """What a firing produces for the channel."""

    SCRIPT = "script"
    PROMPT = "prompt"
    VIDEO_PROMPT_ONLY = "video-prompt-only"


class ChannelAutomationState(str, Enum):
    CURRENT = "current"
    NEXT = "next"
    PREVIOUS = "previous"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class ScheduleSlot:
    """One configured firing point of a channel."""

    id: str
    time: str
    enabled: bool = True
    days_of_week: frozenset[int] = frozenset(range(7))
    prompts_per_run: int = 1
    last_fired_at: datetime | None = None

    @property
    def minute_of_day(self) -> int | None:
        """Minutes since local midnight, ``None`` when ``time`` is malformed."""

        return parse_slot_time(self.time)

    def with_last_fired(self, fired_at: datetime) -> "ScheduleSlot":
        return replace(self, last_fired_at=fired_at)


@dataclass(frozen=True, slots=True)
class Channel:
    """Automation view of a channel owned by a single tenant."""

    id: str
    owner_id: str
    name: str = ""
    platform: Platform = Platform.YOUTUBE_SHORTS
    language: Language = Language.RU
    target_duration_sec: int = 15
    niche: str = ""
    audience: str = ""
    tone: str = ""
    blocked_topics: str = ""
    extra_notes: str | None = None
    generation_mode: GenerationMode = GenerationMode.SCRIPT
    automation_enabled: bool = False
    timezone: str | None = None
    active_window_minutes: int = DEFAULT_ACTIVE_WINDOW_MINUTES
    dispatch_enabled: bool = False
    dispatch_chat_id: str | None = None
    order_index: int = 0
    slots: tuple[ScheduleSlot, ...] = ()

    def eligible_slots(self) -> tuple[ScheduleSlot, ...]:
        """Enabled slots with a well-formed time, empty when automation is off."""

        if not self.automation_enabled:
            return ()
        return tuple(
            slot
            for slot in self.slots
            if slot.enabled and slot.minute_of_day is not None
        )

    def get_slot(self, slot_id: str) -> ScheduleSlot | None:
        for slot in self.slots:
            if slot.id == slot_id:
                return slot
        return None

    def with_slot(self, slot: ScheduleSlot) -> "Channel":
        """Return a copy with ``slot`` replacing the slot of the same id."""

        slots = tuple(slot if existing.id == slot.id else existing for existing in self.slots)
        return replace(self, slots=slots)

    def with_slot_times(
        self, times: Sequence[str], new_slot_id: Callable[[], str]
    ) -> "Channel":
        """Retime the enabled slots in order, adding Mon-Fri slots for extra times.

        Enabled slots beyond ``times`` are dropped; disabled slots are kept
        after the enabled ones unchanged.
        """

        enabled = [slot for slot in self.slots if slot.enabled]
        disabled = [slot for slot in self.slots if not slot.enabled]
        slots: list[ScheduleSlot] = []
        for index, value in enumerate(times):
            if index < len(enabled):
                slots.append(replace(enabled[index], time=value))
            else:
                slots.append(
                    ScheduleSlot(id=new_slot_id(), time=value, days_of_week=DEFAULT_NEW_SLOT_DAYS)
                )
        return replace(self, slots=tuple(slots + disabled))


@dataclass(frozen=True, slots=True)
class ChannelStateInfo:
    """Classification of one channel at a given minute."""

    channel_id: str
    state: ChannelAutomationState
    time_slot: str | None = None
    slot_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "state": self.state.value,
            "time_slot": self.time_slot,
            "slot_id": self.slot_id,
        }


@dataclass(frozen=True, slots=True)
class FleetStates:
    """Fleet-wide picks for the "now / up next / just finished" indicator."""

    now_minutes: int
    states: dict[str, ChannelStateInfo]
    current: ChannelStateInfo | None = None
    next: ChannelStateInfo | None = None
    previous: ChannelStateInfo | None = None

    def state_of(self, channel_id: str) -> ChannelAutomationState:
        info = self.states.get(channel_id)
        return info.state if info is not None else ChannelAutomationState.DEFAULT


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Content returned by the generation collaborator."""

    content: str
    job_reference: str | None = None
    title: str | None = None


@dataclass(frozen=True, slots=True)
class DispatchReceipt:
    message_id: str | None = None
    chat_id: str | None = None


class SkipReason(str, Enum):
    ALREADY_FIRED = "already_fired"
    IN_FLIGHT = "in_flight"
    CLAIMED = "claimed_elsewhere"


class FailureStage(str, Enum):
    """Where in the tick a failure was observed."""

    LIST_CHANNELS = "list_channels"
    GENERATION = "generation"
    DISPATCH = "dispatch"
    PERSIST = "persist"
    CHANNEL = "channel"


@dataclass(slots=True)
class InvocationOutcome:
    """Result of one generation invocation (plus optional dispatch)."""

    index: int
    succeeded: bool
    job_reference: str | None = None
    dispatched: bool = False
    error: str | None = None


@dataclass(slots=True)
class SlotFiring:
    """A due slot occurrence the tick attempted to fire."""

    channel_id: str
    owner_id: str
    slot_id: str
    occurrence_date: date
    invocations: list[InvocationOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.invocations if item.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.invocations if not item.succeeded)


@dataclass(frozen=True, slots=True)
class SkippedSlot:
    channel_id: str
    slot_id: str
    reason: SkipReason


@dataclass(frozen=True, slots=True)
class TickFailure:
    """A failure isolated to one channel or slot."""

    channel_id: str | None
    slot_id: str | None
    stage: FailureStage
    reason: str


@dataclass(slots=True)
class TickReport:
    """Aggregated outcome of a single tick."""

    tick_at: datetime
    started_at: datetime
    finished_at: datetime | None = None
    channels_scanned: int = 0
    firings: list[SlotFiring] = field(default_factory=list)
    skipped: list[SkippedSlot] = field(default_factory=list)
    failures: list[TickFailure] = field(default_factory=list)

    @property
    def succeeded_invocations(self) -> int:
        return sum(firing.succeeded for firing in self.firings)

    @property
    def failed_invocations(self) -> int:
        return sum(firing.failed for firing in self.firings)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def as_dict(self) -> dict[str, Any]:
        return {
            "tick_at": self.tick_at.isoformat(),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "channels_scanned": self.channels_scanned,
            "succeeded_invocations": self.succeeded_invocations,
            "failed_invocations": self.failed_invocations,
            "firings": [
                {
                    "channel_id": firing.channel_id,
                    "slot_id": firing.slot_id,
                    "occurrence_date": firing.occurrence_date.isoformat(),
                    "succeeded": firing.succeeded,
                    "failed": firing.failed,
                    "job_references": [
                        item.job_reference
                        for item in firing.invocations
                        if item.job_reference is not None
                    ],
                }
                for firing in self.firings
            ],
            "skipped": [
                {
                    "channel_id": item.channel_id,
                    "slot_id": item.slot_id,
                    "reason": item.reason.value,
                }
                for item in self.skipped
            ],
            "failures": [
                {
                    "channel_id": item.channel_id,
                    "slot_id": item.slot_id,
                    "stage": item.stage.value,
                    "reason": item.reason,
                }
                for item in self.failures
            ],
        }


__all__ = [
    "Channel",
    "ChannelAutomationState",
    "ChannelStateInfo",
    "DispatchReceipt",
    "FailureStage",
    "FleetStates",
    "GenerationMode",
    "GenerationResult",
    "InvocationOutcome",
    "Language",
    "Platform",
    "ScheduleSlot",
    "SkipReason",
    "SkippedSlot",
    "SlotFiring",
    "TickFailure",
    "TickReport",
]
