"""Slot state classification for status views.

Given ``now`` as minutes since local midnight, every channel is classified as
``current`` (a slot is inside its active window), ``next`` (soonest upcoming
slot, possibly tomorrow) or ``default``. :func:`classify_fleet` then reduces
the per-channel results to a single current/next/previous highlight across
the whole fleet.

All functions are pure: nothing is cached between calls and nothing is
written, so callers may recompute on every request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import (
    Channel,
    ChannelAutomationState,
    ChannelStateInfo,
    FleetStates,
    ScheduleSlot,
)
from .schedule import (
    MINUTES_PER_DAY,
    clamp_active_window,
    minutes_since,
    minutes_until,
)


def is_slot_active(slot_minutes: int, now_minutes: int, window_minutes: int) -> bool:
    """Return ``True`` while ``now`` is inside ``[T, T + W)``, wrapping at midnight."""

    end = slot_minutes + window_minutes
    if end < MINUTES_PER_DAY:
        return slot_minutes <= now_minutes < end
    return now_minutes >= slot_minutes or now_minutes < end % MINUTES_PER_DAY


def has_slot_ended(slot_minutes: int, now_minutes: int, window_minutes: int) -> bool:
    """Return ``True`` when the slot's active window already closed today."""

    end = slot_minutes + window_minutes
    if end < MINUTES_PER_DAY:
        return now_minutes >= end
    return end % MINUTES_PER_DAY <= now_minutes < slot_minutes


@dataclass(frozen=True, slots=True)
class _TimedSlot:
    slot: ScheduleSlot
    minutes: int


@dataclass(frozen=True, slots=True)
class _Pick:
    channel_id: str
    slot: ScheduleSlot
    minutes: int
    # Distance from ``now`` used to rank picks; smaller is nearer.
    distance: int


def _timed_slots(channel: Channel) -> list[_TimedSlot]:
    timed = [
        _TimedSlot(slot=slot, minutes=slot.minute_of_day)  # type: ignore[arg-type]
        for slot in channel.eligible_slots()
    ]
    timed.sort(key=lambda item: item.minutes)
    return timed


def _window(channel: Channel) -> int:
    return clamp_active_window(channel.active_window_minutes)


def _info(channel_id: str, state: ChannelAutomationState, slot: ScheduleSlot | None) -> ChannelStateInfo:
    if slot is None:
        return ChannelStateInfo(channel_id=channel_id, state=state)
    return ChannelStateInfo(
        channel_id=channel_id, state=state, time_slot=slot.time, slot_id=slot.id
    )


def classify_channel(channel: Channel, now_minutes: int) -> ChannelStateInfo:
    """Classify a single channel at ``now_minutes``."""

    timed = _timed_slots(channel)
    if not timed:
        return _info(channel.id, ChannelAutomationState.DEFAULT, None)

    window = _window(channel)
    active = [item for item in timed if is_slot_active(item.minutes, now_minutes, window)]
    if active:
        # The latest-starting active slot represents the channel.
        winner = max(active, key=lambda item: item.minutes)
        return _info(channel.id, ChannelAutomationState.CURRENT, winner.slot)

    for item in timed:
        if item.minutes > now_minutes:
            return _info(channel.id, ChannelAutomationState.NEXT, item.slot)

    # Every slot has passed today; the earliest one fires tomorrow.
    return _info(channel.id, ChannelAutomationState.NEXT, timed[0].slot)


def _pick_current(
    channels: Sequence[Channel], per_channel: dict[str, ChannelStateInfo]
) -> _Pick | None:
    best: _Pick | None = None
    for channel in channels:
        info = per_channel[channel.id]
        if info.state is not ChannelAutomationState.CURRENT or info.slot_id is None:
            continue
        slot = channel.get_slot(info.slot_id)
        if slot is None or slot.minute_of_day is None:
            continue
        if best is None or slot.minute_of_day > best.minutes:
            best = _Pick(channel.id, slot, slot.minute_of_day, 0)
    return best


def _pick_next(
    channels: Sequence[Channel],
    per_channel: dict[str, ChannelStateInfo],
    now_minutes: int,
    excluded: set[str],
) -> _Pick | None:
    best: _Pick | None = None
    for channel in channels:
        if channel.id in excluded:
            continue
        info = per_channel[channel.id]
        if info.state is not ChannelAutomationState.NEXT or info.slot_id is None:
            continue
        slot = channel.get_slot(info.slot_id)
        if slot is None or slot.minute_of_day is None:
            continue
        distance = minutes_until(slot.minute_of_day, now_minutes)
        if best is None or distance < best.distance:
            best = _Pick(channel.id, slot, slot.minute_of_day, distance)
    return best


def _pick_previous(
    channels: Sequence[Channel], now_minutes: int, excluded: set[str]
) -> _Pick | None:
    best: _Pick | None = None
    for channel in channels:
        if channel.id in excluded:
            continue
        window = _window(channel)
        for item in _timed_slots(channel):
            if not has_slot_ended(item.minutes, now_minutes, window):
                continue
            if best is None or item.minutes > best.minutes:
                end = (item.minutes + window) % MINUTES_PER_DAY
                best = _Pick(channel.id, item.slot, item.minutes, minutes_since(end, now_minutes))
    if best is not None:
        return best

    # Nothing ended today: fall back to each channel's latest slot of yesterday.
    for channel in channels:
        if channel.id in excluded:
            continue
        timed = _timed_slots(channel)
        if not timed:
            continue
        latest = timed[-1]
        if best is None or latest.minutes > best.minutes:
            end = (latest.minutes + _window(channel)) % MINUTES_PER_DAY
            distance = minutes_since(end, now_minutes) or MINUTES_PER_DAY
            best = _Pick(channel.id, latest.slot, latest.minutes, distance)
    return best


def classify_fleet(channels: Iterable[Channel], now_minutes: int) -> FleetStates:
    """Reduce per-channel states to one current, next and previous channel.

    Ties are broken by input order: the first channel encountered wins. When
    one channel wins both the next and the previous pick, it keeps whichever
    of the two is nearer to ``now`` (next on equal distance) and the other
    pick is recomputed over the remaining channels.
    """

    ordered = list(channels)
    per_channel = {channel.id: classify_channel(channel, now_minutes) for channel in ordered}

    current = _pick_current(ordered, per_channel)
    excluded = {current.channel_id} if current is not None else set()

    next_pick = _pick_next(ordered, per_channel, now_minutes, excluded)
    previous_pick = _pick_previous(ordered, now_minutes, excluded)

    if (
        next_pick is not None
        and previous_pick is not None
        and next_pick.channel_id == previous_pick.channel_id
    ):
        shared = next_pick.channel_id
        if previous_pick.distance < next_pick.distance:
            next_pick = _pick_next(ordered, per_channel, now_minutes, excluded | {shared})
        else:
            previous_pick = _pick_previous(ordered, now_minutes, excluded | {shared})

    states: dict[str, ChannelStateInfo] = {}
    picks = (
        (current, ChannelAutomationState.CURRENT),
        (next_pick, ChannelAutomationState.NEXT),
        (previous_pick, ChannelAutomationState.PREVIOUS),
    )
    for channel in ordered:
        if channel.id in states:
            continue
        for pick, state in picks:
            if pick is not None and pick.channel_id == channel.id:
                states[channel.id] = _info(channel.id, state, pick.slot)
                break
        else:
            states[channel.id] = _info(channel.id, ChannelAutomationState.DEFAULT, None)

    def _selected(pick: _Pick | None) -> ChannelStateInfo | None:
        return states[pick.channel_id] if pick is not None else None

    return FleetStates(
        now_minutes=now_minutes,
        states=states,
        current=_selected(current),
        next=_selected(next_pick),
        previous=_selected(previous_pick),
    )


__all__ = [
    "classify_channel",
    "classify_fleet",
    "has_slot_ended",
    "is_slot_active",
]
