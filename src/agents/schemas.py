"""Pydantic schemas for booking intent exchange."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

MeetingMinutes = Literal[15, 30, 60]

EMAIL_SHAPE = r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$"


class BookingIntentUpdate(BaseModel):
    """Fields recognized in a single transcript fragment."""

    date: datetime | None = None
    duration: MeetingMinutes | None = None
    name: str | None = None
    email: str | None = Field(default=None, pattern=EMAIL_SHAPE)
    time_zone: str | None = None

    @field_validator("name", "time_zone")
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class BookingIntent(BookingIntentUpdate):
    """Booking parameters accumulated over one call.

    Fields move from unset to set only: ``merge`` never overwrites a value
    captured by an earlier fragment of the same call.
    """

    def merge(self, update: BookingIntentUpdate) -> list[str]:
        """Fill unset fields from ``update`` and return the names that changed."""

        changed: list[str] = []
        for field_name, value in update.model_dump(exclude_none=True).items():
            if getattr(self, field_name) is None:
                setattr(self, field_name, value)
                changed.append(field_name)
        return changed

    def missing(self, required: list[str] | tuple[str, ...]) -> list[str]:
        return [field_name for field_name in required if getattr(self, field_name) is None]

    def is_complete(self, required: list[str] | tuple[str, ...]) -> bool:
        return not self.missing(required)

    def snapshot(self) -> BookingIntent:
        return self.model_copy(deep=True)

    def to_record(self) -> dict[str, Any]:
        """Serialize using the external booking record keys."""

        return {
            "date": self.date.isoformat() if self.date else None,
            "duration": self.duration,
            "name": self.name,
            "email": self.email,
            "timeZone": self.time_zone,
        }
