"""Twilio Voice integration.

This module provides:
- Outbound call placement with answering-machine detection.
- The TwiML webhook deciding between a live media stream and a voicemail.
- The media stream websocket, one media bridge per connection.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from urllib.parse import urlencode
from xml.sax.saxutils import escape, quoteattr

from fastapi import APIRouter, Depends, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse

from api.dependencies import get_bridge_factory, get_twilio_cfg, get_twilio_client
from api.schemas import OutboundCallFailure, OutboundCallRequest, OutboundCallResponse
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["twilio"])

MEDIA_STREAM_PATH = "/outbound-media-stream"

# Twilio may be configured to call the TwiML webhook with any method.
TWIML_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
FORM_METHODS = {"POST", "PUT", "PATCH"}


def _twiml_response(xml: str) -> Response:
    return Response(content=xml, media_type="text/xml")


def _public_base_url(request: Request, configured: str | None = None) -> str:
    configured = configured or get_settings().public_base_url
    if configured:
        return configured.rstrip("/")
    return f"https://{request.headers.get('host', request.url.netloc)}"


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _twiml_stream(*, stream_url: str, parameters: dict[str, str]) -> str:
    params = "".join(
        f"<Parameter name={quoteattr(name)} value={quoteattr(value)} />"
        for name, value in parameters.items()
    )
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Connect>"
        f"<Stream url={quoteattr(stream_url)}>"
        f"{params}"
        "</Stream>"
        "</Connect>"
        "</Response>"
    )


def _twiml_say_and_hangup(*, say_text: str) -> str:
    say = escape(say_text)
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say>{say}</Say>"
        "<Hangup/>"
        "</Response>"
    )


@router.post("/outbound-call")
async def outbound_call(
    payload: OutboundCallRequest,
    request: Request,
    twilio_client=Depends(get_twilio_client),
    cfg=Depends(get_twilio_cfg),
):
    if not payload.number:
        return JSONResponse(status_code=400, content={"error": "Phone number is required"})

    settings = get_settings()
    query = urlencode({"prompt": payload.prompt or "", "first_message": payload.first_message or ""})
    twiml_url = f"{_public_base_url(request, cfg.public_base_url)}/outbound-call-twiml?{query}"

    try:
        call = await asyncio.to_thread(
            partial(
                twilio_client.calls.create,
                from_=cfg.from_number,
                to=payload.number,
                url=twiml_url,
                machine_detection="Enable",
                machine_detection_timeout=settings.twilio_machine_detection_timeout,
            )
        )
    except Exception as exc:
        LOGGER.exception("Error initiating outbound call: %s", exc)
        return JSONResponse(status_code=500, content=OutboundCallFailure().model_dump())

    LOGGER.info("Outbound call %s initiated to %s", call.sid, payload.number)
    return OutboundCallResponse(call_sid=str(call.sid)).model_dump(by_alias=True)


@router.api_route("/outbound-call-twiml", methods=TWIML_METHODS)
async def outbound_call_twiml(request: Request) -> Response:
    settings = get_settings()
    try:
        form = await request.form() if request.method in FORM_METHODS else {}
        answered_by = str(form.get("AnsweredBy") or "unknown")
        LOGGER.info("Answered by: %s", answered_by)

        if answered_by == "human":
            stream_url = _to_ws_url(_public_base_url(request)) + MEDIA_STREAM_PATH
            xml = _twiml_stream(
                stream_url=stream_url,
                parameters={
                    "prompt": request.query_params.get("prompt", ""),
                    "first_message": request.query_params.get("first_message", ""),
                },
            )
        elif answered_by == "machine_start":
            xml = _twiml_say_and_hangup(say_text=settings.voicemail_message)
        else:
            xml = _twiml_say_and_hangup(say_text=settings.missed_call_message)
    except Exception as exc:
        LOGGER.exception("Error in /outbound-call-twiml: %s", exc)
        return PlainTextResponse("Internal Server Error", status_code=500)

    return _twiml_response(xml)


@router.websocket(MEDIA_STREAM_PATH)
async def outbound_media_stream(
    websocket: WebSocket,
    bridge_factory=Depends(get_bridge_factory),
) -> None:
    await websocket.accept()
    LOGGER.info("[Server] Twilio connected to outbound media stream")

    bridge = bridge_factory(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            await bridge.handle_telephony_message(message)
    except WebSocketDisconnect:
        LOGGER.info("[Server] Twilio closed the media stream")
    except Exception as exc:
        LOGGER.exception("[Server] Media stream transport error: %s", exc)
    finally:
        await bridge.close()
