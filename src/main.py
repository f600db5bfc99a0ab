"""Entry point for the outbound calling and booking bridge service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.dependencies import get_booking_trigger
from api.routes import router as api_router
from api.twilio_routes import router as twilio_router
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    LOGGER.info("[Server] Bridge ready (environment=%s)", settings.environment)
    yield
    # Let in-flight bookings finish before the process exits.
    await get_booking_trigger().drain()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

settings.require_runtime_settings()

app = FastAPI(
    title="Outbound Booking Voice Bridge",
    description="Bridges Twilio media streams to ElevenLabs Conversational AI and books meetings.",
    lifespan=lifespan,
)
app.include_router(api_router)
app.include_router(twilio_router)
