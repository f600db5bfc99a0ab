"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends

from bridge.booking import BookingTrigger
from config.settings import get_settings

if TYPE_CHECKING:  # pragma: no cover
    from bridge.media_bridge import MediaBridge, TelephonySocket

BridgeFactory = Callable[["TelephonySocket"], "MediaBridge"]


@lru_cache(maxsize=1)
def _booking_trigger_factory() -> BookingTrigger:
    # Lazy imports keep the calendar client out of module import time.
    from integrations.booking_webhook import BookingWebhook
    from integrations.google_calendar import GoogleCalendarBooker

    settings = get_settings()
    sinks = [GoogleCalendarBooker(settings)]
    if settings.booking_webhook_url:
        sinks.append(BookingWebhook(settings))
    return BookingTrigger(sinks)


def get_booking_trigger() -> BookingTrigger:
    return _booking_trigger_factory()


def get_bridge_factory(
    booking_trigger: BookingTrigger = Depends(get_booking_trigger),
) -> BridgeFactory:
    from bridge.media_bridge import MediaBridge
    from integrations.elevenlabs_session import ElevenLabsSession

    settings = get_settings()

    def session_factory(parameters: Mapping[str, str]) -> ElevenLabsSession:
        return ElevenLabsSession.from_settings(parameters, settings)

    def build(telephony: TelephonySocket) -> MediaBridge:
        return MediaBridge(
            telephony,
            session_factory=session_factory,
            booking_trigger=booking_trigger,
            required_fields=settings.booking_required_fields,
        )

    return build


def get_twilio_client():
    from integrations.twilio_client import build_twilio_client

    return build_twilio_client()


def get_twilio_cfg():
    from integrations.twilio_client import get_twilio_config

    return get_twilio_config()
