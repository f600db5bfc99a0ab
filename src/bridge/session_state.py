from __future__ import annotations

import enum
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from agents.schemas import BookingIntent


class BridgeState(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"


class SpeechSession(Protocol):
    """Outbound speech-AI leg as seen by the media bridge."""

    @property
    def is_open(self) -> bool:  # pragma: no cover - protocol stub
        ...

    async def connect(self) -> None:  # pragma: no cover - protocol stub
        ...

    def events(self) -> AsyncIterator[Any]:  # pragma: no cover - protocol stub
        ...

    async def send_user_audio(self, payload: str) -> None:  # pragma: no cover - protocol stub
        ...

    async def send_pong(self, event_id: Any) -> None:  # pragma: no cover - protocol stub
        ...

    async def close(self) -> None:  # pragma: no cover - protocol stub
        ...


@dataclass
class SessionState:
    """Mutable per-call record, owned by exactly one media bridge."""

    stream_sid: str | None = None
    call_sid: str | None = None
    custom_parameters: dict[str, str] = field(default_factory=dict)
    outbound_session: SpeechSession | None = None
    booking_intent: BookingIntent = field(default_factory=BookingIntent)
    booking_triggered: bool = False
    state: BridgeState = BridgeState.IDLE

    def log_context(self) -> str:
        return f"call={self.call_sid or '-'} stream={self.stream_sid or '-'}"
