from __future__ import annotations

import pytest
from pydantic import ValidationError

from agents.errors import ConfigurationError
from config.settings import Settings


def test_required_fields_default_to_date():
    assert Settings().booking_required_fields == ["date"]


def test_required_fields_accept_json_spelling_of_timezone(monkeypatch):
    monkeypatch.setenv("BOOKING_REQUIRED_FIELDS", '["Date", " timezone ", "email"]')

    assert Settings().booking_required_fields == ["date", "time_zone", "email"]


def test_required_fields_reject_unknown_names():
    with pytest.raises(ValidationError):
        Settings(booking_required_fields=["date", "phone"])


def test_require_runtime_settings_lists_missing_variables():
    settings = Settings(
        elevenlabs_api_key="key",
        elevenlabs_agent_id=None,
        twilio_account_sid="AC1",
        twilio_auth_token="",
        twilio_phone_number="+15005550006",
    )

    with pytest.raises(ConfigurationError) as excinfo:
        settings.require_runtime_settings()

    assert "ELEVENLABS_AGENT_ID" in excinfo.value.detail
    assert "TWILIO_AUTH_TOKEN" in excinfo.value.detail
    assert "ELEVENLABS_API_KEY" not in excinfo.value.detail


def test_twilio_config_strips_base_url_and_reports_missing_credentials():
    from integrations.twilio_client import get_twilio_config

    cfg = get_twilio_config(
        Settings(
            twilio_account_sid="AC1",
            twilio_auth_token="token",
            twilio_phone_number="+15005550006",
            public_base_url="https://calls.example.com/",
        )
    )
    assert cfg.from_number == "+15005550006"
    assert cfg.public_base_url == "https://calls.example.com"

    with pytest.raises(ConfigurationError, match="TWILIO_PHONE_NUMBER"):
        get_twilio_config(
            Settings(twilio_account_sid="AC1", twilio_auth_token="token", twilio_phone_number=None)
        )
