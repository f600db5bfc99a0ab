from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Required at import time of ``main``.
os.environ.setdefault("ELEVENLABS_API_KEY", "xi-test-key")
os.environ.setdefault("ELEVENLABS_AGENT_ID", "agent-test")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "AC123")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15005550006")


class FakeSpeechSession:
    """In-memory stand-in for the ElevenLabs session."""

    def __init__(self, parameters=None, *, fail_connect: bool = False, events=(), end_stream: bool = False) -> None:
        self.parameters = dict(parameters or {})
        self.fail_connect = fail_connect
        self.pending_events = list(events)
        self.end_stream = end_stream
        self.closed = asyncio.Event()
        self.audio: list[str] = []
        self.pongs: list = []
        self.close_calls = 0
        self.connected = False

    @property
    def is_open(self) -> bool:
        return self.connected and self.close_calls == 0

    async def connect(self) -> None:
        from agents.errors import AdapterUnavailableError

        if self.fail_connect:
            raise AdapterUnavailableError("signed url refused")
        self.connected = True

    async def events(self):
        for event in self.pending_events:
            yield event
        # The provider keeps its socket open until one side closes it.
        if not self.end_stream:
            await self.closed.wait()

    async def send_user_audio(self, payload: str) -> None:
        self.audio.append(payload)

    async def send_pong(self, event_id) -> None:
        self.pongs.append(event_id)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed.set()


class FakeTelephony:
    def __init__(self) -> None:
        self.sent: list[str] = []

    async def send_text(self, data: str) -> None:
        self.sent.append(data)


class RecordingTrigger:
    def __init__(self) -> None:
        self.fired = []

    def fire(self, intent, *, call_sid=None):
        self.fired.append((intent, call_sid))


@pytest.fixture()
def fake_telephony() -> FakeTelephony:
    return FakeTelephony()


@pytest.fixture()
def recording_trigger() -> RecordingTrigger:
    return RecordingTrigger()


@pytest.fixture(scope="session")
def app():
    import importlib

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
