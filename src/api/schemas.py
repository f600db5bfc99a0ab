"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class OutboundCallRequest(BaseModel):
    number: str | None = Field(default=None, description="E.164 phone number, e.g. +1416...")
    prompt: str | None = None
    first_message: str | None = None


class OutboundCallResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Call initiated"
    call_sid: str = Field(alias="callSid")


class OutboundCallFailure(BaseModel):
    success: bool = False
    error: str = "Failed to initiate call"


class HealthResponse(BaseModel):
    message: str = "Server is running"
