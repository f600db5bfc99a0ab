from __future__ import annotations

import json

import pytest

from agents.errors import MessageParseError
from integrations.twilio_streaming import (
    StreamMediaEvent,
    StreamStartEvent,
    StreamStopEvent,
    StreamUnknownEvent,
    build_clear_frame,
    build_media_frame,
    parse_twilio_ws_message,
)


def test_parse_start_reads_ids_and_parameter_list():
    event = parse_twilio_ws_message(
        json.dumps(
            {
                "event": "start",
                "streamSid": "MZ1",
                "callSid": "CA1",
                "parameters": [
                    {"name": "prompt", "value": "be brief"},
                    {"name": "first_message", "value": "hello"},
                    {"name": "empty", "value": ""},
                ],
            }
        )
    )

    assert event == StreamStartEvent(
        stream_sid="MZ1",
        call_sid="CA1",
        parameters={"prompt": "be brief", "first_message": "hello"},
    )


def test_parse_start_reads_nested_custom_parameters():
    event = parse_twilio_ws_message(
        json.dumps(
            {
                "event": "start",
                "streamSid": "MZ2",
                "start": {
                    "streamSid": "MZ2",
                    "callSid": "CA2",
                    "customParameters": {"prompt": "p", "first_message": "f"},
                },
            }
        )
    )

    assert isinstance(event, StreamStartEvent)
    assert event.call_sid == "CA2"
    assert event.parameters == {"prompt": "p", "first_message": "f"}


def test_parse_media_stop_and_unknown():
    media = parse_twilio_ws_message('{"event": "media", "media": {"payload": "AAEC", "track": "inbound"}}')
    stop = parse_twilio_ws_message('{"event": "stop", "streamSid": "MZ1"}')
    mark = parse_twilio_ws_message('{"event": "mark", "mark": {"name": "x"}}')

    assert media == StreamMediaEvent(payload="AAEC", track="inbound")
    assert stop == StreamStopEvent(stream_sid="MZ1")
    assert isinstance(mark, StreamUnknownEvent)
    assert mark.event == "mark"


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"media"'])
def test_parse_rejects_malformed_frames(raw):
    with pytest.raises(MessageParseError):
        parse_twilio_ws_message(raw)


def test_outbound_frames_are_addressed_by_stream_sid():
    assert json.loads(build_media_frame("MZ1", "UklGRg==")) == {
        "event": "media",
        "streamSid": "MZ1",
        "media": {"payload": "UklGRg=="},
    }
    assert json.loads(build_clear_frame("MZ1")) == {"event": "clear", "streamSid": "MZ1"}
