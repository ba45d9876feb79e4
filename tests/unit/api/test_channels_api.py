from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from src.autosend.config import AppSettings, load_config
from src.autosend.domain.models import Platform
from src.autosend.main import create_app
from tests.helpers.channels import make_channel, make_slot
from tests.mocks.providers import (
    InMemoryScheduleStore,
    MockCollaboratorConfig,
    MockDispatcher,
    MockGenerator,
    MockScenario,
    fixed_clock,
)

pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 3, 8, 5, tzinfo=timezone.utc)
OWNER = {"X-Owner-Id": "owner-1"}


def _channels():
    return [
        make_channel(
            "c1",
            make_slot("s1", "20:00"),
            make_slot("s2", "08:00"),
            make_slot("s3", "09:00", enabled=False),
            make_slot("s4", "8:00"),
            order_index=1,
            dispatch_chat_id="555",
        ),
        replace(
            make_channel("c2", order_index=0, automation_enabled=False),
            name="",
            platform=Platform.TIKTOK,
        ),
        make_channel("other", make_slot("s9", "10:00"), owner_id="owner-2"),
    ]


def _build_app(*, dispatcher=None, dispatch_timeout_seconds: float = 25.0):
    settings = AppSettings(
        database_url="sqlite:///:memory:",
        enable_cron_scheduler=False,
        dispatch_timeout_seconds=dispatch_timeout_seconds,
    )
    store = InMemoryScheduleStore(_channels())
    generator = MockGenerator()
    app = create_app(
        load_config(settings),
        store=store,
        generator=generator,
        dispatcher=dispatcher,
        clock=fixed_clock(NOW),
    )
    return TestClient(app), store, generator


def test_schedule_listing_requires_owner_header():
    client, _, _ = _build_app()

    assert client.get("/api/channels/schedule").status_code == 400


def test_schedule_listing_orders_channels_and_lists_enabled_times():
    client, _, _ = _build_app()

    response = client.get("/api/channels/schedule", headers=OWNER)

    assert response.status_code == 200
    assert response.json() == [
        {
            "id": "c2",
            "index": 1,
            "name": "Untitled",
            "times": [],
            "platform": "TikTok",
            "is_automation_enabled": False,
        },
        {
            "id": "c1",
            "index": 2,
            "name": "Channel c1",
            "times": ["08:00", "20:00"],
            "platform": "YouTube Shorts",
            "is_automation_enabled": True,
        },
    ]


def test_update_schedule_retimes_enabled_slots_and_keeps_disabled_ones():
    client, store, _ = _build_app()

    response = client.patch(
        "/api/channels/c1/schedule",
        json={"times": ["21:00", "", None, "07:30", "07:30", "06:00"]},
        headers=OWNER,
    )

    assert response.status_code == 200
    assert response.json()["times"] == ["06:00", "07:30", "21:00"]
    slots = store.get_channel("c1").slots
    # Enabled slots s1, s2 and s4 are retimed in order; s3 stays disabled at the end.
    assert [(slot.id, slot.time, slot.enabled) for slot in slots] == [
        ("s1", "06:00", True),
        ("s2", "07:30", True),
        ("s4", "21:00", True),
        ("s3", "09:00", False),
    ]


def test_update_schedule_adds_weekday_slots_for_extra_times():
    client, store, _ = _build_app()

    response = client.patch(
        "/api/channels/c2/schedule", json={"times": ["10:00", "11:00"]}, headers=OWNER
    )

    assert response.status_code == 200
    slots = store.get_channel("c2").slots
    assert [slot.time for slot in slots] == ["10:00", "11:00"]
    assert all(slot.days_of_week == frozenset({1, 2, 3, 4, 5}) for slot in slots)
    assert len({slot.id for slot in slots}) == 2


@pytest.mark.parametrize(
    "times",
    [
        ["25:00"],
        ["7:00"],
        [f"{hour:02d}:00" for hour in range(11)],
    ],
)
def test_update_schedule_rejects_invalid_times(times):
    client, store, _ = _build_app()

    response = client.patch("/api/channels/c1/schedule", json={"times": times}, headers=OWNER)

    assert response.status_code == 400
    assert store.saved == []


def test_update_schedule_hides_other_tenants_channels():
    client, store, _ = _build_app()

    foreign = client.patch("/api/channels/other/schedule", json={"times": []}, headers=OWNER)
    missing = client.patch("/api/channels/nope/schedule", json={"times": []}, headers=OWNER)

    assert foreign.status_code == 404
    assert missing.status_code == 404
    assert store.saved == []


def test_reorder_channels_updates_listing_order():
    client, _, _ = _build_app()

    response = client.patch(
        "/api/channels/reorder", json={"ordered_ids": ["c1", "c2"]}, headers=OWNER
    )

    assert response.status_code == 200
    listing = client.get("/api/channels/schedule", headers=OWNER).json()
    assert [(item["id"], item["index"]) for item in listing] == [("c1", 1), ("c2", 2)]


def test_reorder_rejects_empty_and_foreign_ids():
    client, store, _ = _build_app()

    empty = client.patch("/api/channels/reorder", json={"ordered_ids": []}, headers=OWNER)
    foreign = client.patch(
        "/api/channels/reorder", json={"ordered_ids": ["c1", "other"]}, headers=OWNER
    )

    assert empty.status_code == 400
    assert foreign.status_code == 403
    assert "other" in foreign.json()["detail"]["details"]
    assert store.saved == []


def test_custom_prompt_is_dispatched_without_touching_slots():
    dispatcher = MockDispatcher()
    client, store, generator = _build_app(dispatcher=dispatcher)

    response = client.post(
        "/api/channels/c1/run-custom-prompt",
        json={"prompt": "  Film a sunrise timelapse  ", "title": "Sunrise"},
        headers=OWNER,
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "queued"
    assert body["job_id"] == f"custom_c1_{int(NOW.timestamp() * 1000)}"
    assert body["chat_id"] == "555"
    assert dispatcher.sent == [("c1", "Film a sunrise timelapse")]
    assert generator.calls == []
    assert store.update_calls == []


@pytest.mark.parametrize("prompt", ["", "   ", "x" * 15_001])
def test_custom_prompt_validates_text(prompt):
    dispatcher = MockDispatcher()
    client, _, _ = _build_app(dispatcher=dispatcher)

    response = client.post(
        "/api/channels/c1/run-custom-prompt", json={"prompt": prompt}, headers=OWNER
    )

    assert response.status_code == 400
    assert dispatcher.sent == []


def test_custom_prompt_for_foreign_channel_is_not_found():
    dispatcher = MockDispatcher()
    client, _, _ = _build_app(dispatcher=dispatcher)

    response = client.post(
        "/api/channels/other/run-custom-prompt", json={"prompt": "hi"}, headers=OWNER
    )

    assert response.status_code == 404
    assert dispatcher.sent == []


def test_custom_prompt_without_dispatcher_is_unavailable():
    client, _, _ = _build_app()

    response = client.post(
        "/api/channels/c1/run-custom-prompt", json={"prompt": "hi"}, headers=OWNER
    )

    assert response.status_code == 503


def test_custom_prompt_maps_dispatch_failures():
    failing = MockDispatcher(MockCollaboratorConfig(scenario=MockScenario.ERROR))
    client, _, _ = _build_app(dispatcher=failing)
    error = client.post("/api/channels/c1/run-custom-prompt", json={"prompt": "hi"}, headers=OWNER)

    hanging = MockDispatcher(
        MockCollaboratorConfig(scenario=MockScenario.TIMEOUT, hang_seconds=1.0)
    )
    client, _, _ = _build_app(dispatcher=hanging, dispatch_timeout_seconds=0.1)
    timeout = client.post(
        "/api/channels/c1/run-custom-prompt", json={"prompt": "hi"}, headers=OWNER
    )

    assert error.status_code == 502
    assert timeout.status_code == 504
    assert timeout.json()["detail"]["status"] == "timeout"
