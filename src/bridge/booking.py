"""Fire-and-forget dispatch of captured bookings."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from agents.errors import BookingError
from agents.schemas import BookingIntent

LOGGER = logging.getLogger(__name__)


class BookingSink(Protocol):
    async def book(self, intent: BookingIntent) -> None:  # pragma: no cover - protocol stub
        ...


class BookingTrigger:
    """Runs every sink for a booking in the background.

    Failures are logged and never retried. Pending tasks are referenced until
    they finish so that ``drain`` can await them on shutdown.
    """

    def __init__(self, sinks: Iterable[BookingSink]) -> None:
        self._sinks = list(sinks)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def fire(self, intent: BookingIntent, *, call_sid: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(self._dispatch(intent.snapshot(), call_sid))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _dispatch(self, intent: BookingIntent, call_sid: str | None) -> None:
        for sink in self._sinks:
            try:
                await sink.book(intent)
            except BookingError as exc:
                LOGGER.error("Failed to create booking for call %s: %s", call_sid, exc.detail)
            except Exception as exc:
                LOGGER.exception("Booking sink %s failed for call %s: %s", type(sink).__name__, call_sid, exc)
            else:
                LOGGER.info("Meeting booked via %s for call %s", type(sink).__name__, call_sid)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
