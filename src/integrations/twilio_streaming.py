"""Twilio Media Streams wire protocol.

Inbound frames are decoded once, at the socket boundary, into a closed set of
event types. Outbound frames are built by the helpers at the bottom.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from agents.errors import MessageParseError


@dataclass(frozen=True)
class StreamStartEvent:
    stream_sid: str | None
    call_sid: str | None
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StreamMediaEvent:
    payload: str
    track: str | None = None


@dataclass(frozen=True)
class StreamStopEvent:
    stream_sid: str | None = None


@dataclass(frozen=True)
class StreamUnknownEvent:
    event: str
    raw: dict[str, Any] = field(default_factory=dict)


TwilioStreamEvent = Union[StreamStartEvent, StreamMediaEvent, StreamStopEvent, StreamUnknownEvent]


def _custom_parameters(start: dict[str, Any], message: dict[str, Any]) -> dict[str, str]:
    # Twilio nests <Parameter> values under start.customParameters; a flat
    # parameters[] list of name/value pairs is accepted as well.
    parameters: dict[str, str] = {}
    custom = start.get("customParameters")
    if isinstance(custom, dict):
        for name, value in custom.items():
            if name and value:
                parameters[str(name)] = str(value)

    entries = message.get("parameters") or start.get("parameters") or []
    if isinstance(entries, list):
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name")
            value = entry.get("value")
            if name and value:
                parameters[str(name)] = str(value)
    return parameters


def parse_twilio_ws_message(text: str | bytes) -> TwilioStreamEvent:
    """Decode one Media Streams frame.

    Raises ``MessageParseError`` for frames that are not JSON objects.
    """

    try:
        message = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MessageParseError(f"Invalid Twilio frame: {exc}") from exc
    if not isinstance(message, dict):
        raise MessageParseError("Twilio frame is not a JSON object")

    event = str(message.get("event") or "")
    if event == "start":
        start = message.get("start") if isinstance(message.get("start"), dict) else {}
        return StreamStartEvent(
            stream_sid=message.get("streamSid") or start.get("streamSid"),
            call_sid=message.get("callSid") or start.get("callSid"),
            parameters=_custom_parameters(start, message),
        )
    if event == "media":
        media = message.get("media") if isinstance(message.get("media"), dict) else {}
        return StreamMediaEvent(payload=str(media.get("payload") or ""), track=media.get("track"))
    if event == "stop":
        return StreamStopEvent(stream_sid=message.get("streamSid"))
    return StreamUnknownEvent(event=event, raw=message)


def build_media_frame(stream_sid: str, payload: str) -> str:
    return json.dumps({"event": "media", "streamSid": stream_sid, "media": {"payload": payload}})


def build_clear_frame(stream_sid: str) -> str:
    return json.dumps({"event": "clear", "streamSid": stream_sid})
