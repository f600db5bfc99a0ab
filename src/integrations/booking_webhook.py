"""HTTP hook notifying an external backend about triggered bookings."""

from __future__ import annotations

import logging

import httpx

from agents.errors import BookingError, ConfigurationError
from agents.schemas import BookingIntent
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


class BookingWebhook:
    """Posts the booking record as JSON to a configured endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        if not settings.booking_webhook_url:
            raise ConfigurationError("Booking webhook endpoint is not configured.")
        self._endpoint = settings.booking_webhook_url.rstrip("/")
        self._api_key = settings.booking_webhook_api_key
        self._transport = transport

    async def book(self, intent: BookingIntent) -> None:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
                response = await client.post(
                    self._endpoint,
                    json=intent.to_record(),
                    headers=headers,
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Booking webhook dispatch failed: %s", exc)
            raise BookingError(f"Booking webhook failed: {exc}") from exc
        LOGGER.info("Response from booking backend: %s", response.status_code)
