"""Twilio REST credentials and client construction for outbound calls."""

from __future__ import annotations

from dataclasses import dataclass

from agents.errors import ConfigurationError
from config.settings import Settings, get_settings


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str
    auth_token: str
    from_number: str
    public_base_url: str | None = None


def get_twilio_config(settings: Settings | None = None) -> TwilioConfig:
    settings = settings or get_settings()
    missing = [
        name
        for name, value in (
            ("TWILIO_ACCOUNT_SID", settings.twilio_account_sid),
            ("TWILIO_AUTH_TOKEN", settings.twilio_auth_token),
            ("TWILIO_PHONE_NUMBER", settings.twilio_phone_number),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Twilio is not configured: {', '.join(missing)}")

    base_url = settings.public_base_url
    return TwilioConfig(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
        public_base_url=base_url.rstrip("/") if base_url else None,
    )


def build_twilio_client(cfg: TwilioConfig | None = None):
    from twilio.rest import Client

    cfg = cfg or get_twilio_config()
    return Client(cfg.account_sid, cfg.auth_token)
