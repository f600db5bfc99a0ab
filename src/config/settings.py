"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agents.errors import ConfigurationError

BOOKING_INTENT_FIELDS = ("date", "duration", "name", "email", "time_zone")


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # ElevenLabs Conversational AI
    elevenlabs_api_key: str | None = Field(default=None)
    elevenlabs_agent_id: str | None = Field(default=None)
    elevenlabs_api_base: str = Field(
        default="https://api.elevenlabs.io",
        description="Base URL used for the signed-URL credential exchange.",
    )
    elevenlabs_connect_timeout: float = Field(default=10.0, gt=0.0)

    # Twilio (Voice)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_phone_number: str | None = Field(default=None, description="E.164, e.g. +1416...")
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    twilio_machine_detection_timeout: int = Field(default=5)

    # Conversation defaults
    default_agent_prompt: str = Field(default="you are a gary from the phone store")
    default_first_message: str = Field(default="hey there! how can I help you today?")
    voicemail_message: str = Field(
        default=(
            "Hi, this is Oliver from AdraptrrixAI. We help businesses manage customer calls 24/7 "
            "using lifelike AI calling agents that sound just like real people and can even "
            "schedule appointments. If you're interested in learning more, feel free to reach "
            "out to us at 416206144. Looking forward to connecting!"
        )
    )
    missed_call_message: str = Field(
        default="Hi, this is Oliver from AdraptrrixAI. Sorry we missed you!"
    )

    # Booking
    booking_required_fields: list[str] = Field(
        default_factory=lambda: ["date"],
        description="Intent fields that must be captured before a booking is triggered.",
    )
    google_service_account_file: str = Field(default="credentials.json")
    google_calendar_id: str = Field(default="primary")
    default_time_zone: str = Field(default="UTC")
    default_meeting_minutes: int = Field(default=30, gt=0)

    # Optional booking backend
    booking_webhook_url: str | None = Field(
        default=None,
        description="Optional HTTP endpoint notified with every triggered booking.",
    )
    booking_webhook_api_key: str | None = Field(default=None)

    @field_validator("booking_required_fields")
    @classmethod
    def validate_required_fields(cls, value: list[str]) -> list[str]:
        normalized = [field.strip().lower() for field in value if field.strip()]
        # The JSON spelling of the timezone field is accepted too.
        normalized = ["time_zone" if field == "timezone" else field for field in normalized]
        unknown = sorted(set(normalized) - set(BOOKING_INTENT_FIELDS))
        if unknown:
            raise ValueError(f"Unknown booking intent fields: {', '.join(unknown)}")
        return normalized

    def require_runtime_settings(self) -> None:
        """Fail fast when a setting needed to serve calls is missing."""

        required = {
            "ELEVENLABS_API_KEY": self.elevenlabs_api_key,
            "ELEVENLABS_AGENT_ID": self.elevenlabs_agent_id,
            "TWILIO_ACCOUNT_SID": self.twilio_account_sid,
            "TWILIO_AUTH_TOKEN": self.twilio_auth_token,
            "TWILIO_PHONE_NUMBER": self.twilio_phone_number,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
