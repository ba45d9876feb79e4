from __future__ import annotations

import pytest

from src.autosend.domain.automation_state import (
    classify_channel,
    classify_fleet,
    has_slot_ended,
    is_slot_active,
)
from src.autosend.domain.models import ChannelAutomationState as State
from src.autosend.domain.schedule import parse_slot_time
from tests.helpers.channels import make_channel, make_slot

pytestmark = pytest.mark.unit


def _m(value: str) -> int:
    minutes = parse_slot_time(value)
    assert minutes is not None
    return minutes


def test_wraparound_window_is_active_across_midnight():
    slot = _m("23:50")
    active = {now for now in range(1440) if is_slot_active(slot, now, 20)}

    expected = set(range(_m("23:50"), 1440)) | set(range(0, 10))
    assert active == expected


def test_wraparound_slot_ended_only_after_window_closes():
    slot = _m("23:50")

    assert not has_slot_ended(slot, _m("00:09"), 20)
    assert has_slot_ended(slot, _m("00:10"), 20)
    assert has_slot_ended(slot, _m("23:49"), 20)
    assert not has_slot_ended(slot, _m("23:50"), 20)


def test_window_is_half_open():
    slot = _m("08:00")

    assert is_slot_active(slot, _m("08:00"), 11)
    assert is_slot_active(slot, _m("08:10"), 11)
    assert not is_slot_active(slot, _m("08:11"), 11)
    assert has_slot_ended(slot, _m("08:11"), 11)


def test_scenario_two_slots_over_a_day():
    channel = make_channel("c1", make_slot("s1", "08:00"), make_slot("s2", "20:00"))

    morning = classify_fleet([channel], _m("08:05"))
    assert morning.states["c1"].state is State.CURRENT
    assert morning.states["c1"].time_slot == "08:00"

    evening = classify_fleet([channel], _m("19:00"))
    assert evening.states["c1"].state is State.NEXT
    assert evening.states["c1"].time_slot == "20:00"

    night = classify_fleet([channel], _m("23:00"))
    assert night.states["c1"].state is State.PREVIOUS
    assert night.states["c1"].time_slot == "20:00"
    assert night.previous is not None and night.previous.slot_id == "s2"


def test_single_slot_falls_back_to_tomorrow():
    channel = make_channel("c1", make_slot("s1", "09:00"))

    info = classify_channel(channel, _m("10:00"))

    assert info.state is State.NEXT
    assert info.time_slot == "09:00"


def test_latest_active_slot_represents_channel():
    channel = make_channel(
        "c1", make_slot("s1", "08:00"), make_slot("s2", "08:05"), window=20
    )

    info = classify_channel(channel, _m("08:10"))

    assert info.state is State.CURRENT
    assert info.slot_id == "s2"


def test_channel_without_eligible_slots_is_default():
    disabled = make_channel("c1", make_slot("s1", "08:00"), automation_enabled=False)
    no_slots = make_channel("c2")
    only_disabled = make_channel("c3", make_slot("s1", "08:00", enabled=False))

    for channel in (disabled, no_slots, only_disabled):
        assert classify_channel(channel, _m("08:05")).state is State.DEFAULT


def test_malformed_times_are_ignored():
    channel = make_channel(
        "c1", make_slot("bad", "8:00"), make_slot("worse", "25:61"), make_slot("ok", "12:00")
    )

    assert classify_channel(channel, _m("11:00")).slot_id == "ok"
    assert classify_channel(make_channel("c2", make_slot("bad", "oops")), 0).state is State.DEFAULT


def test_at_most_one_global_current():
    channels = [
        make_channel("a", make_slot("a1", "08:00"), window=30),
        make_channel("b", make_slot("b1", "08:10"), window=30),
        make_channel("c", make_slot("c1", "08:05"), window=30),
        make_channel("d", make_slot("d1", "23:50"), window=60),
    ]

    for now in range(0, 1440, 7):
        fleet = classify_fleet(channels, now)
        currents = [info for info in fleet.states.values() if info.state is State.CURRENT]
        assert len(currents) <= 1

    fleet = classify_fleet(channels, _m("08:15"))
    assert fleet.current is not None and fleet.current.channel_id == "b"


def test_fleet_next_is_soonest_upcoming_and_ties_follow_input_order():
    channels = [
        make_channel("a", make_slot("a1", "12:00")),
        make_channel("b", make_slot("b1", "10:00")),
        make_channel("c", make_slot("c1", "10:00")),
    ]

    fleet = classify_fleet(channels, _m("09:00"))

    assert fleet.next is not None
    assert fleet.next.channel_id == "b"
    assert fleet.states["c"].state is State.DEFAULT


def test_fleet_previous_is_latest_ended_slot():
    channels = [
        make_channel("a", make_slot("a1", "06:00")),
        make_channel("b", make_slot("b1", "07:00"), make_slot("b2", "13:00")),
        make_channel("c", make_slot("c1", "12:00")),
    ]

    fleet = classify_fleet(channels, _m("08:00"))

    assert fleet.previous is not None
    assert fleet.previous.channel_id == "b"
    assert fleet.previous.slot_id == "b1"
    assert fleet.next is not None and fleet.next.channel_id == "c"
    assert fleet.states["a"].state is State.DEFAULT


def test_fleet_previous_falls_back_to_yesterday():
    channels = [
        make_channel("a", make_slot("a1", "10:00"), make_slot("a2", "18:00")),
        make_channel("b", make_slot("b1", "12:00")),
    ]

    fleet = classify_fleet(channels, _m("07:00"))

    assert fleet.next is not None and fleet.next.channel_id == "a"
    assert fleet.previous is not None
    assert fleet.previous.channel_id == "b"
    assert fleet.previous.slot_id == "b1"


def test_current_channel_is_excluded_from_other_picks():
    channels = [
        make_channel("a", make_slot("a1", "08:00"), make_slot("a2", "09:00")),
        make_channel("b", make_slot("b1", "11:00")),
    ]

    fleet = classify_fleet(channels, _m("08:05"))

    assert fleet.current is not None and fleet.current.channel_id == "a"
    assert fleet.next is not None and fleet.next.channel_id == "b"
    assert fleet.states["a"].state is State.CURRENT


def test_classifier_is_pure():
    channels = [
        make_channel("a", make_slot("a1", "08:00"), make_slot("a2", "20:00")),
        make_channel("b", make_slot("b1", "23:50"), window=20),
    ]

    first = classify_fleet(channels, _m("23:55"))
    second = classify_fleet(channels, _m("23:55"))

    assert first == second
    assert classify_channel(channels[1], 5) == classify_channel(channels[1], 5)


def test_state_info_serialises():
    channel = make_channel("c1", make_slot("s1", "08:00"))

    info = classify_channel(channel, _m("08:01"))

    assert info.as_dict() == {
        "channel_id": "c1",
        "state": "current",
        "time_slot": "08:00",
        "slot_id": "s1",
    }
