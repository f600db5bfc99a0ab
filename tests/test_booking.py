from __future__ import annotations

import asyncio
import json
from datetime import datetime

import httpx
import pytest

from agents.errors import BookingError, ConfigurationError
from agents.schemas import BookingIntent
from bridge.booking import BookingTrigger
from config.settings import Settings
from integrations.booking_webhook import BookingWebhook
from integrations.google_calendar import GoogleCalendarBooker, build_event_body


def _run(coro):
    return asyncio.run(coro)


def _intent(**overrides) -> BookingIntent:
    values = {
        "date": datetime(2026, 10, 20, 15, 0),
        "duration": 30,
        "name": "Alice Smith",
        "email": "alice@example.com",
        "time_zone": "Europe/Berlin",
    }
    values.update(overrides)
    return BookingIntent(**values)


class RecordingSink:
    def __init__(self) -> None:
        self.booked: list[BookingIntent] = []

    async def book(self, intent: BookingIntent) -> None:
        self.booked.append(intent)


class FailingSink:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls = 0

    async def book(self, intent: BookingIntent) -> None:
        self.calls += 1
        raise self.exc


def test_trigger_runs_every_sink_and_swallows_failures(caplog):
    failing = FailingSink(BookingError("calendar down"))
    crashing = FailingSink(RuntimeError("boom"))
    recording = RecordingSink()
    trigger = BookingTrigger([failing, crashing, recording])

    async def scenario():
        trigger.fire(_intent(), call_sid="CA1")
        assert trigger.pending == 1
        await trigger.drain()
        assert trigger.pending == 0

    _run(scenario())

    assert failing.calls == 1
    assert crashing.calls == 1
    assert len(recording.booked) == 1
    assert "calendar down" in caplog.text


def test_trigger_books_a_snapshot():
    recording = RecordingSink()
    trigger = BookingTrigger([recording])
    intent = _intent(email=None)

    async def scenario():
        trigger.fire(intent)
        intent.email = "late@example.com"
        await trigger.drain()

    _run(scenario())

    assert recording.booked[0].email is None


def test_build_event_body_applies_duration_and_zone():
    body = build_event_body(_intent(), default_minutes=45, default_time_zone="UTC")

    assert body["summary"] == "Meeting with Alice Smith"
    assert body["description"] == "Booked by voice assistant. Email: alice@example.com"
    assert body["start"] == {"dateTime": "2026-10-20T15:00:00+02:00", "timeZone": "Europe/Berlin"}
    assert body["end"] == {"dateTime": "2026-10-20T15:30:00+02:00", "timeZone": "Europe/Berlin"}
    assert body["attendees"] == [{"email": "alice@example.com", "displayName": "Alice Smith"}]


def test_build_event_body_uses_defaults_for_missing_fields():
    body = build_event_body(
        BookingIntent(date=datetime(2026, 10, 20, 9, 0)),
        default_minutes=45,
        default_time_zone="UTC",
    )

    assert body["summary"] == "Meeting with caller"
    assert body["end"]["dateTime"] == "2026-10-20T09:45:00+00:00"
    assert body["end"]["timeZone"] == "UTC"
    assert "attendees" not in body


def test_build_event_body_requires_date_and_known_zone():
    with pytest.raises(BookingError):
        build_event_body(BookingIntent(name="x"), default_minutes=30, default_time_zone="UTC")
    with pytest.raises(BookingError):
        build_event_body(_intent(time_zone="Mars/Olympus"), default_minutes=30, default_time_zone="UTC")


class FakeInsert:
    def __init__(self, calls, calendar_id, body, fail):
        self._calls = calls
        self._calendar_id = calendar_id
        self._body = body
        self._fail = fail

    def execute(self):
        if self._fail:
            raise RuntimeError("quota exceeded")
        self._calls.append((self._calendar_id, self._body))
        return {"id": "evt-1", "htmlLink": "https://calendar.example/evt-1"}


class FakeEvents:
    def __init__(self, calls, fail):
        self._calls = calls
        self._fail = fail

    def insert(self, *, calendarId, body):
        return FakeInsert(self._calls, calendarId, body, self._fail)


class FakeCalendarService:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list = []
        self._fail = fail

    def events(self):
        return FakeEvents(self.calls, self._fail)


def test_google_calendar_booker_inserts_event():
    service = FakeCalendarService()
    booker = GoogleCalendarBooker(Settings(google_calendar_id="team@example.com"), service=service)

    result = _run(booker.book(_intent()))

    assert result == {
        "event_id": "evt-1",
        "html_link": "https://calendar.example/evt-1",
        "status": "confirmed",
    }
    calendar_id, body = service.calls[0]
    assert calendar_id == "team@example.com"
    assert body["summary"] == "Meeting with Alice Smith"


def test_google_calendar_booker_wraps_api_errors():
    booker = GoogleCalendarBooker(Settings(), service=FakeCalendarService(fail=True))

    with pytest.raises(BookingError, match="quota exceeded"):
        _run(booker.book(_intent()))


def test_booking_webhook_posts_record():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"ok": True})

    webhook = BookingWebhook(
        Settings(booking_webhook_url="https://backend.example/users/", booking_webhook_api_key="s3cret"),
        transport=httpx.MockTransport(handler),
    )

    _run(webhook.book(_intent()))

    assert str(requests[0].url) == "https://backend.example/users"
    assert requests[0].headers["Authorization"] == "Bearer s3cret"
    assert json.loads(requests[0].content) == {
        "date": "2026-10-20T15:00:00",
        "duration": 30,
        "name": "Alice Smith",
        "email": "alice@example.com",
        "timeZone": "Europe/Berlin",
    }


def test_booking_webhook_raises_booking_error_on_http_failure():
    webhook = BookingWebhook(
        Settings(booking_webhook_url="https://backend.example/users"),
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    with pytest.raises(BookingError):
        _run(webhook.book(_intent()))


def test_booking_webhook_requires_endpoint():
    with pytest.raises(ConfigurationError):
        BookingWebhook(Settings(booking_webhook_url=None))
