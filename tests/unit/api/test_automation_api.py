from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from src.autosend.config import AppSettings, load_config
from src.autosend.main import create_app
from tests.helpers.channels import make_channel, make_slot
from tests.mocks.providers import InMemoryScheduleStore, MockGenerator, fixed_clock

pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 3, 8, 5, tzinfo=timezone.utc)


def _build_app(*, cron_secret: str | None = "s3cret", now: datetime = NOW):
    settings = AppSettings(
        database_url="sqlite:///:memory:",
        enable_cron_scheduler=False,
        cron_secret=cron_secret,
    )
    store = InMemoryScheduleStore(
        [
            make_channel("c1", make_slot("s1", "08:00"), make_slot("s2", "20:00"), order_index=0),
            make_channel("c2", make_slot("s3", "09:00"), order_index=1),
            make_channel("other", make_slot("s4", "08:05"), owner_id="owner-2"),
        ]
    )
    generator = MockGenerator()
    app = create_app(load_config(settings), store=store, generator=generator, clock=fixed_clock(now))
    return app, store, generator


def test_health():
    app, _, _ = _build_app()

    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_status_requires_owner_header():
    app, _, _ = _build_app()

    response = TestClient(app).get("/api/automation/status")

    assert response.status_code == 400


def test_status_rejects_unknown_timezone():
    app, _, _ = _build_app()

    response = TestClient(app).get(
        "/api/automation/status",
        params={"tz": "Mars/Olympus"},
        headers={"X-Owner-Id": "owner-1"},
    )

    assert response.status_code == 400
    assert "Mars/Olympus" in response.json()["detail"]["details"]


def test_status_classifies_tenant_channels():
    app, _, _ = _build_app()

    response = TestClient(app).get(
        "/api/automation/status", headers={"X-Owner-Id": "owner-1"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["now"] == "08:05"
    assert body["timezone"] == "UTC"
    assert [item["channel_id"] for item in body["channels"]] == ["c1", "c2"]
    assert body["current"] == {
        "channel_id": "c1",
        "state": "current",
        "time_slot": "08:00",
        "slot_id": "s1",
    }
    assert body["next"]["channel_id"] == "c2"
    assert body["previous"] is None


def test_status_uses_requested_timezone():
    app, _, _ = _build_app()

    response = TestClient(app).get(
        "/api/automation/status",
        params={"tz": "Europe/Moscow"},
        headers={"X-Owner-Id": "owner-1"},
    )

    body = response.json()
    assert body["now"] == "11:05"
    assert body["next"]["time_slot"] == "20:00"


def test_manual_tick_requires_secret():
    app, _, generator = _build_app()
    client = TestClient(app)

    assert client.post("/api/cron/manual-tick").status_code == 403
    assert (
        client.post("/api/cron/manual-tick", headers={"X-Cron-Secret": "wrong"}).status_code
        == 403
    )
    assert generator.calls == []


def test_manual_tick_fires_due_slots_and_updates_last_tick():
    app, store, generator = _build_app(now=datetime(2024, 6, 3, 8, 5, 30, tzinfo=timezone.utc))
    client = TestClient(app)

    assert client.get("/api/automation/last-tick").json() == {"report": None}

    response = client.post("/api/cron/manual-tick", headers={"X-Cron-Secret": "s3cret"})

    assert response.status_code == 200
    body = response.json()
    assert body["tick_at"] == "2024-06-03T08:05:00+00:00"
    assert [firing["channel_id"] for firing in body["firings"]] == ["other"]
    assert [call[0] for call in generator.calls] == ["other"]
    assert store.get_channel("other").get_slot("s4").last_fired_at is not None

    last = client.get("/api/automation/last-tick").json()["report"]
    assert last["tick_at"] == body["tick_at"]
    assert last["succeeded_invocations"] == 1


def test_manual_tick_is_open_without_configured_secret():
    app, _, _ = _build_app(cron_secret=None)

    response = TestClient(app).post("/api/cron/manual-tick")

    assert response.status_code == 200
