"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OutboundCallRequest(BaseModel):
    number: str | None = Field(default=None, description="E.164 number to call, e.g. +1415...")
    prompt: str | None = Field(default=None, description="Agent prompt override for this call.")
    client: str | None = Field(default=None, description="Name of the person being called.")
    source: str | None = Field(default=None, description="Channel the lead came from.")
    age: str | None = None
    damage: str | None = None
    insurance: str | None = None
    forward_to: str | None = Field(default=None, description="Number a human agent answers on.")
    first_message: str | None = Field(
        default=None, description="Opening line; generated from the lead facts when omitted."
    )


class OutboundCallResponse(BaseModel):
    success: bool = True
    message: str = "Call initiated"
    call_sid: str = Field(serialization_alias="callSid")
