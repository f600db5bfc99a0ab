"""Google Calendar booking sink.

Uses a Google Cloud service account to insert events through the Calendar
API v3. The client library is synchronous, so calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agents.errors import BookingError
from agents.schemas import BookingIntent
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]


def build_event_body(
    intent: BookingIntent,
    *,
    default_minutes: int,
    default_time_zone: str,
) -> dict[str, Any]:
    """Render a booking as a Calendar API event resource."""

    if intent.date is None:
        raise BookingError("A booking needs a date")

    time_zone = intent.time_zone or default_time_zone
    start = intent.date
    if start.tzinfo is None:
        try:
            start = start.replace(tzinfo=ZoneInfo(time_zone))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise BookingError(f"Unknown time zone {time_zone!r}") from exc
    end = start + timedelta(minutes=intent.duration or default_minutes)

    name = intent.name or "caller"
    body: dict[str, Any] = {
        "summary": f"Meeting with {name}",
        "description": f"Booked by voice assistant. Email: {intent.email or 'not provided'}",
        "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
    }
    if intent.email:
        attendee = {"email": intent.email}
        if intent.name:
            attendee["displayName"] = intent.name
        body["attendees"] = [attendee]
    return body


class GoogleCalendarBooker:
    """Creates one calendar event per triggered booking."""

    def __init__(self, settings: Settings | None = None, service: Any = None) -> None:
        settings = settings or get_settings()
        self._service_account_file = settings.google_service_account_file
        self._calendar_id = settings.google_calendar_id
        self._default_minutes = settings.default_meeting_minutes
        self._default_time_zone = settings.default_time_zone
        self._service = service

    def _get_service(self) -> Any:
        if self._service is None:
            # Lazy import keeps the Google client out of module import time.
            from google.oauth2.service_account import Credentials
            from googleapiclient.discovery import build

            credentials = Credentials.from_service_account_file(
                self._service_account_file, scopes=SCOPES
            )
            self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        return self._service

    def _insert(self, body: dict[str, Any]) -> dict[str, Any]:
        service = self._get_service()
        return service.events().insert(calendarId=self._calendar_id, body=body).execute()

    async def book(self, intent: BookingIntent) -> dict[str, Any]:
        body = build_event_body(
            intent,
            default_minutes=self._default_minutes,
            default_time_zone=self._default_time_zone,
        )
        try:
            result = await asyncio.to_thread(self._insert, body)
        except Exception as exc:
            raise BookingError(f"Google Calendar insert failed: {exc}") from exc

        LOGGER.info(
            "Google Calendar event %s created on %s at %s",
            result.get("id"),
            self._calendar_id,
            body["start"]["dateTime"],
        )
        return {
            "event_id": result.get("id"),
            "html_link": result.get("htmlLink", ""),
            "status": result.get("status", "confirmed"),
        }
