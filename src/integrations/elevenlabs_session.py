"""ElevenLabs Conversational AI session for one phone call.

The session owns the outbound websocket. It performs the signed-URL
credential exchange, opens the socket, sends the per-call agent
configuration and then only translates messages: provider JSON in, typed
events out; bridge requests in, provider JSON out.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from agents.errors import AdapterUnavailableError, MessageParseError
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

SIGNED_URL_PATH = "/v1/convai/conversation/get_signed_url"


@dataclass(frozen=True)
class InitiationMetadataEvent:
    conversation_id: str | None = None


@dataclass(frozen=True)
class AudioEvent:
    payload: str


@dataclass(frozen=True)
class InterruptionEvent:
    pass


@dataclass(frozen=True)
class PingEvent:
    event_id: Any


@dataclass(frozen=True)
class AgentResponseEvent:
    text: str


@dataclass(frozen=True)
class UserTranscriptEvent:
    text: str


@dataclass(frozen=True)
class UnknownProviderEvent:
    type: str
    raw: dict[str, Any] = field(default_factory=dict)


ProviderEvent = Union[
    InitiationMetadataEvent,
    AudioEvent,
    InterruptionEvent,
    PingEvent,
    AgentResponseEvent,
    UserTranscriptEvent,
    UnknownProviderEvent,
]


def _section(message: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = message.get(key)
    return value if isinstance(value, Mapping) else {}


def decode_provider_message(raw: str | bytes) -> ProviderEvent:
    """Map one provider frame onto the event vocabulary.

    Frames whose ``type`` carries no usable payload (an audio frame without
    audio, a ping without an id) decode to ``UnknownProviderEvent``.
    """

    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MessageParseError(f"Invalid provider message: {exc}") from exc
    if not isinstance(message, dict):
        raise MessageParseError("Provider message is not a JSON object")

    msg_type = str(message.get("type") or "")

    if msg_type == "conversation_initiation_metadata":
        metadata = _section(message, "conversation_initiation_metadata_event")
        return InitiationMetadataEvent(conversation_id=metadata.get("conversation_id"))

    if msg_type == "audio":
        payload = _section(message, "audio_event").get("audio_base_64") or _section(
            message, "audio"
        ).get("chunk")
        if payload:
            return AudioEvent(payload=str(payload))

    elif msg_type == "interruption":
        return InterruptionEvent()

    elif msg_type == "ping":
        event_id = _section(message, "ping_event").get("event_id")
        if event_id is not None:
            return PingEvent(event_id=event_id)

    elif msg_type == "agent_response":
        text = _section(message, "agent_response_event").get("agent_response")
        return AgentResponseEvent(text=str(text or ""))

    elif msg_type == "user_transcript":
        text = _section(message, "user_transcription_event").get("user_transcript")
        return UserTranscriptEvent(text=str(text or ""))

    return UnknownProviderEvent(type=msg_type, raw=message)


def encode_user_audio(payload: str) -> str:
    return json.dumps({"user_audio_chunk": payload})


def encode_pong(event_id: Any) -> str:
    return json.dumps({"type": "pong", "event_id": event_id})


def encode_initiation(prompt: str, first_message: str) -> str:
    return json.dumps(
        {
            "type": "conversation_initiation_client_data",
            "conversation_config_override": {
                "agent": {
                    "prompt": {"prompt": prompt},
                    "first_message": first_message,
                },
            },
        }
    )


Connector = Callable[..., Awaitable[Any]]


class ElevenLabsSession:
    """Outbound speech-AI session bound to one call's custom parameters."""

    def __init__(
        self,
        *,
        api_key: str,
        agent_id: str,
        custom_parameters: Mapping[str, str] | None = None,
        default_prompt: str,
        default_first_message: str,
        api_base: str = "https://api.elevenlabs.io",
        connect_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        connector: Connector | None = None,
    ) -> None:
        self._api_key = api_key
        self._agent_id = agent_id
        self._parameters = dict(custom_parameters or {})
        self._default_prompt = default_prompt
        self._default_first_message = default_first_message
        self._api_base = api_base.rstrip("/")
        self._timeout = connect_timeout
        self._transport = transport
        self._connector = connector or websockets.connect
        self._ws: Any = None
        self._closed = False
        self._ended = False

    @classmethod
    def from_settings(
        cls,
        custom_parameters: Mapping[str, str] | None = None,
        settings: Settings | None = None,
    ) -> ElevenLabsSession:
        settings = settings or get_settings()
        return cls(
            api_key=settings.elevenlabs_api_key or "",
            agent_id=settings.elevenlabs_agent_id or "",
            custom_parameters=custom_parameters,
            default_prompt=settings.default_agent_prompt,
            default_first_message=settings.default_first_message,
            api_base=settings.elevenlabs_api_base,
            connect_timeout=settings.elevenlabs_connect_timeout,
        )

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closed and not self._ended

    @property
    def prompt(self) -> str:
        return self._parameters.get("prompt") or self._default_prompt

    @property
    def first_message(self) -> str:
        return self._parameters.get("first_message") or self._default_first_message

    async def get_signed_url(self) -> str:
        if not self._api_key or not self._agent_id:
            raise AdapterUnavailableError("ElevenLabs credentials are not configured")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self._api_base}{SIGNED_URL_PATH}",
                    params={"agent_id": self._agent_id},
                    headers={"xi-api-key": self._api_key},
                )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            LOGGER.error("Failed to get signed URL: %s", exc)
            raise AdapterUnavailableError(f"Failed to get signed URL: {exc}") from exc

        signed_url = payload.get("signed_url") if isinstance(payload, dict) else None
        if not signed_url:
            raise AdapterUnavailableError("No signed_url in credential exchange response")
        return str(signed_url)

    async def connect(self) -> None:
        """Exchange credentials, open the socket and send the agent config."""

        signed_url = await self.get_signed_url()
        try:
            self._ws = await asyncio.wait_for(
                self._connector(signed_url, max_size=16 * 1024 * 1024, close_timeout=5),
                timeout=self._timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            LOGGER.error("ElevenLabs connection failed: %s", exc)
            raise AdapterUnavailableError(f"ElevenLabs connection failed: {exc}") from exc

        LOGGER.info("[ElevenLabs] Connected to Conversational AI")
        LOGGER.info("[ElevenLabs] Sending initial config with prompt: %s", self.prompt)
        try:
            await self._ws.send(encode_initiation(self.prompt, self.first_message))
        except (OSError, WebSocketException) as exc:
            await self.close()
            raise AdapterUnavailableError(f"Failed to send agent configuration: {exc}") from exc

    async def events(self) -> AsyncIterator[ProviderEvent]:
        """Yield decoded provider events until the socket closes."""

        if self._ws is None:
            return
        try:
            async for raw in self._ws:
                try:
                    yield decode_provider_message(raw)
                except MessageParseError as exc:
                    LOGGER.warning("[ElevenLabs] Dropping malformed message: %s", exc.detail)
        except ConnectionClosed as exc:
            LOGGER.info("[ElevenLabs] Connection closed: %s", exc)
        finally:
            self._ended = True

    async def send_user_audio(self, payload: str) -> None:
        await self._send(encode_user_audio(payload))

    async def send_pong(self, event_id: Any) -> None:
        await self._send(encode_pong(event_id))

    async def _send(self, text: str) -> None:
        if not self.is_open:
            LOGGER.debug("[ElevenLabs] Send skipped, session is not open")
            return
        try:
            await self._ws.send(text)
        except ConnectionClosed as exc:
            LOGGER.warning("[ElevenLabs] Send failed, connection closed: %s", exc)
            self._ended = True

    async def close(self) -> None:
        if self._ws is None or self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except (OSError, WebSocketException) as exc:
            LOGGER.debug("[ElevenLabs] Close error: %s", exc)
        LOGGER.info("[ElevenLabs] Connection closed")
