"""Twilio outbound calls bridged to an ElevenLabs Conversational AI agent.

This module provides:
- An endpoint that places an outbound call for a lead.
- The TwiML webhook Twilio fetches when the call is answered, which connects
  the call to a Media Stream and hands every call parameter along.
- The Media Stream WebSocket, served by one MediaBridge per call.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, Response, WebSocket
from fastapi.responses import JSONResponse

from api.dependencies import (
    get_agent_connector,
    get_conversation_defaults,
    get_opening_line_generator,
    get_transfer_orchestrator,
    get_twilio_cfg,
    get_twilio_client,
)
from api.schemas import OutboundCallRequest, OutboundCallResponse
from bridge.controller import MediaBridge
from bridge.translator import FIRST_MESSAGE_PARAM, FORWARD_TO_PARAM, PROMPT_PARAM
from config.settings import get_settings
from integrations.twilio_client import TwilioConfig
from integrations.twiml import to_ws_url, twiml_connect_stream
from llm.opening_line import LeadFacts

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["outbound"])

MEDIA_STREAM_PATH = "/outbound-media-stream"
TWIML_PATH = "/outbound-call-twiml"

# Order in which call parameters travel through TwiML into the stream's customParameters.
CALL_PARAMETERS = (
    PROMPT_PARAM,
    "client",
    "source",
    "age",
    "damage",
    "insurance",
    FORWARD_TO_PARAM,
    FIRST_MESSAGE_PARAM,
)


def _public_base_url(request: Request, cfg: TwilioConfig) -> str:
    if cfg.public_base_url:
        return cfg.public_base_url
    # Twilio only reaches us over TLS; behind a proxy the request scheme may say otherwise.
    return f"https://{request.url.netloc}"


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


@router.post("/outbound-call", response_model=OutboundCallResponse)
async def create_outbound_call(
    payload: OutboundCallRequest,
    request: Request,
    twilio_client=Depends(get_twilio_client),
    cfg: TwilioConfig = Depends(get_twilio_cfg),
    opening_lines=Depends(get_opening_line_generator),
):
    number = (payload.number or "").strip()
    if not number:
        raise HTTPException(status_code=400, detail="Phone number is required")

    first_message = payload.first_message
    if not first_message:
        first_message = await opening_lines.generate(
            LeadFacts(
                client=payload.client,
                source=payload.source,
                age=payload.age,
                damage=payload.damage,
                insurance=payload.insurance,
            )
        )

    values = payload.model_dump()
    values[FIRST_MESSAGE_PARAM] = first_message
    params = {name: values[name] for name in CALL_PARAMETERS if values.get(name)}
    twiml_url = f"{_public_base_url(request, cfg)}{TWIML_PATH}?{urlencode(params)}"

    try:
        call = await asyncio.to_thread(
            twilio_client.calls.create,
            to=number,
            from_=cfg.from_number,
            url=twiml_url,
            method="POST",
        )
    except Exception:
        LOGGER.exception("Error initiating outbound call to %s", number)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to initiate call"},
        )

    LOGGER.info("Outbound call %s initiated to %s", call.sid, number)
    return OutboundCallResponse(call_sid=str(call.sid))


@router.api_route(TWIML_PATH, methods=["GET", "POST"])
async def outbound_call_twiml(request: Request, cfg: TwilioConfig = Depends(get_twilio_cfg)) -> Response:
    parameters = {name: request.query_params.get(name, "") for name in CALL_PARAMETERS}
    stream_url = to_ws_url(f"{_public_base_url(request, cfg)}{MEDIA_STREAM_PATH}")
    return _twiml_response(twiml_connect_stream(stream_url=stream_url, parameters=parameters))


@router.websocket(MEDIA_STREAM_PATH)
async def outbound_media_stream(
    websocket: WebSocket,
    connector=Depends(get_agent_connector),
    orchestrator=Depends(get_transfer_orchestrator),
    defaults=Depends(get_conversation_defaults),
) -> None:
    await websocket.accept()
    bridge = MediaBridge(
        websocket,
        connector,
        orchestrator,
        defaults,
        fallback_transfer_number=get_settings().transfer_fallback_number,
    )
    await bridge.run()
