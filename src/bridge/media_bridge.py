"""Per-call bridge between a Twilio media stream and a speech-AI session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Protocol

from agents.errors import AdapterUnavailableError, MessageParseError
from agents.extraction import extract_intent
from bridge.booking import BookingTrigger
from bridge.session_state import BridgeState, SessionState, SpeechSession
from integrations.elevenlabs_session import (
    AgentResponseEvent,
    AudioEvent,
    InitiationMetadataEvent,
    InterruptionEvent,
    PingEvent,
    ProviderEvent,
    UserTranscriptEvent,
)
from integrations.twilio_streaming import (
    StreamMediaEvent,
    StreamStartEvent,
    StreamStopEvent,
    TwilioStreamEvent,
    build_clear_frame,
    build_media_frame,
    parse_twilio_ws_message,
)

LOGGER = logging.getLogger(__name__)


class TelephonySocket(Protocol):
    async def send_text(self, data: str) -> None:  # pragma: no cover - protocol stub
        ...


SessionFactory = Callable[[Mapping[str, str]], SpeechSession]


class MediaBridge:
    """Relays audio both ways and accumulates booking intent for one call.

    Telephony frames and speech-AI events are handled one at a time under a
    per-bridge lock. Opening the speech-AI session and booking run as
    background tasks, outside the lock.
    """

    def __init__(
        self,
        telephony: TelephonySocket,
        *,
        session_factory: SessionFactory,
        booking_trigger: BookingTrigger,
        required_fields: Iterable[str] = ("date",),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._telephony = telephony
        self._session_factory = session_factory
        self._booking_trigger = booking_trigger
        self._required_fields = tuple(required_fields)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._handshake_task: asyncio.Task | None = None
        self._pump_task: asyncio.Task | None = None
        self.session = SessionState()

    @property
    def state(self) -> BridgeState:
        return self.session.state

    @property
    def handshake(self) -> asyncio.Task | None:
        return self._handshake_task

    # ------------------------------------------------------------------
    # Telephony leg
    # ------------------------------------------------------------------

    async def handle_telephony_message(self, text: str | bytes) -> None:
        try:
            event = parse_twilio_ws_message(text)
        except MessageParseError as exc:
            LOGGER.warning("[Server] Error processing message: %s", exc.detail)
            return
        await self.handle_telephony_event(event)

    async def handle_telephony_event(self, event: TwilioStreamEvent) -> None:
        async with self._lock:
            state = self.session.state
            if isinstance(event, StreamStartEvent) and state is BridgeState.IDLE:
                self._on_start(event)
            elif isinstance(event, StreamMediaEvent) and state is BridgeState.ACTIVE:
                await self._on_media(event)
            elif isinstance(event, StreamStopEvent) and state is BridgeState.ACTIVE:
                await self._teardown()
                LOGGER.info("[Server] Stream stopped")
            else:
                LOGGER.info(
                    "[Server] Unhandled event %s in state %s",
                    getattr(event, "event", type(event).__name__),
                    state.value,
                )

    def _on_start(self, event: StreamStartEvent) -> None:
        self.session.stream_sid = event.stream_sid
        self.session.call_sid = event.call_sid
        self.session.custom_parameters = dict(event.parameters)
        self.session.state = BridgeState.ACTIVE
        LOGGER.info(
            "[Server] Stream started (%s) with parameters: %s",
            self.session.log_context(),
            self.session.custom_parameters,
        )
        self._handshake_task = asyncio.create_task(self._open_speech_session())

    async def _on_media(self, event: StreamMediaEvent) -> None:
        outbound = self.session.outbound_session
        # Frames arriving before the speech session is open are dropped.
        if outbound is None or not outbound.is_open:
            return
        await outbound.send_user_audio(event.payload)

    # ------------------------------------------------------------------
    # Speech-AI leg
    # ------------------------------------------------------------------

    async def _open_speech_session(self) -> None:
        outbound = self._session_factory(dict(self.session.custom_parameters))
        try:
            await outbound.connect()
            async with self._lock:
                if self.session.state is not BridgeState.ACTIVE:
                    LOGGER.info("[ElevenLabs] Call ended during setup, closing session")
                    await outbound.close()
                    return
                self.session.outbound_session = outbound
                self._pump_task = asyncio.create_task(self._pump(outbound))
        except AdapterUnavailableError as exc:
            LOGGER.error(
                "[ElevenLabs] Failed to setup session (%s): %s",
                self.session.log_context(),
                exc.detail,
            )
        except asyncio.CancelledError:
            await outbound.close()
            raise
        except Exception as exc:
            LOGGER.exception(
                "[ElevenLabs] Unexpected error during setup (%s): %s",
                self.session.log_context(),
                exc,
            )
            await outbound.close()

    async def _pump(self, outbound: SpeechSession) -> None:
        try:
            async for event in outbound.events():
                try:
                    await self.handle_adapter_event(event)
                except Exception as exc:
                    LOGGER.exception(
                        "[ElevenLabs] Error handling %s (%s): %s",
                        type(event).__name__,
                        self.session.log_context(),
                        exc,
                    )
        except Exception as exc:
            LOGGER.exception("[ElevenLabs] Event stream failed: %s", exc)
        LOGGER.info("[ElevenLabs] Event stream ended (%s)", self.session.log_context())

        # A closed speech session ends the call as well.
        async with self._lock:
            if self.session.state is BridgeState.ACTIVE and self.session.outbound_session is outbound:
                await self._teardown()
                LOGGER.info("[Server] Speech session closed, bridge torn down")

    async def handle_adapter_event(self, event: ProviderEvent) -> None:
        async with self._lock:
            if self.session.state is not BridgeState.ACTIVE:
                LOGGER.debug("[ElevenLabs] Ignoring %s, bridge is %s", type(event).__name__, self.state.value)
                return

            stream_sid = self.session.stream_sid
            if isinstance(event, AudioEvent):
                if not stream_sid:
                    LOGGER.info("[ElevenLabs] Received audio but no StreamSid yet")
                    return
                await self._telephony.send_text(build_media_frame(stream_sid, event.payload))
            elif isinstance(event, InterruptionEvent):
                if stream_sid:
                    await self._telephony.send_text(build_clear_frame(stream_sid))
            elif isinstance(event, PingEvent):
                outbound = self.session.outbound_session
                if outbound is not None and outbound.is_open:
                    await outbound.send_pong(event.event_id)
            elif isinstance(event, UserTranscriptEvent):
                self._on_transcript(event.text)
            elif isinstance(event, AgentResponseEvent):
                LOGGER.info("[Twilio] Agent response: %s", event.text)
            elif isinstance(event, InitiationMetadataEvent):
                LOGGER.info("[ElevenLabs] Received initiation metadata")
            else:
                LOGGER.info("[ElevenLabs] Unhandled message type: %s", getattr(event, "type", event))

    def _on_transcript(self, text: str) -> None:
        LOGGER.info("[Twilio] User transcript: %s", text)
        intent = self.session.booking_intent
        update = extract_intent(text.lower(), original=text, now=self._clock())
        changed = intent.merge(update)
        if changed:
            LOGGER.info(
                "[User Input] (%s) captured %s: %s",
                self.session.log_context(),
                ", ".join(changed),
                intent.to_record(),
            )

        if self.session.booking_triggered or not intent.is_complete(self._required_fields):
            return
        self.session.booking_triggered = True
        self._booking_trigger.fire(intent.snapshot(), call_sid=self.session.call_sid)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Tear down after the telephony socket closed or failed."""

        async with self._lock:
            if self.session.state is BridgeState.CLOSED:
                return
            await self._teardown()
            LOGGER.info("[Server] Twilio media stream disconnected")

    async def _teardown(self) -> None:
        self.session.state = BridgeState.CLOSED

        current = asyncio.current_task()
        if self._handshake_task is not None and self._handshake_task is not current:
            self._handshake_task.cancel()
        if self._pump_task is not None and self._pump_task is not current:
            self._pump_task.cancel()

        outbound = self.session.outbound_session
        self.session.outbound_session = None
        if outbound is not None:
            await outbound.close()

        self.session.stream_sid = None
        self.session.call_sid = None
