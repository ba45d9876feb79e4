from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from src.autosend.config import AppSettings, load_config
from src.autosend.logging import configure_logging, redact_secrets, resolve_level
from src.autosend.main import create_app
from tests.mocks.providers import InMemoryScheduleStore, MockGenerator

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_root_level():
    root = logging.getLogger()
    previous = root.level
    yield
    root.setLevel(previous)


def test_settings_read_log_level_from_environment(monkeypatch):
    monkeypatch.setenv("AUTOSEND_LOG_LEVEL", "debug")

    assert AppSettings().log_level == "DEBUG"
    assert AppSettings(log_level=" warning ").log_level == "WARNING"


def test_settings_reject_unknown_log_level():
    with pytest.raises(ValidationError):
        AppSettings(log_level="chatty")


def test_configure_logging_applies_level_by_name():
    configure_logging("DEBUG")
    assert logging.getLogger().level == logging.DEBUG

    configure_logging(logging.ERROR)
    assert logging.getLogger().level == logging.ERROR


def test_resolve_level_rejects_unknown_name():
    assert resolve_level("warning") == logging.WARNING
    with pytest.raises(ValueError):
        resolve_level("chatty")


def test_create_app_uses_configured_log_level():
    settings = AppSettings(
        database_url="sqlite:///:memory:",
        enable_cron_scheduler=False,
        log_level="WARNING",
    )

    create_app(load_config(settings), store=InMemoryScheduleStore(), generator=MockGenerator())

    assert logging.getLogger().level == logging.WARNING


def test_redact_secrets_masks_credential_fields():
    event = redact_secrets(
        None,
        "info",
        {"event": "x", "bot_token": "123:abc", "openai_api_key": "sk", "channel_id": "c1"},
    )

    assert event["bot_token"] == "***REDACTED***"
    assert event["openai_api_key"] == "***REDACTED***"
    assert event["channel_id"] == "c1"
