"""Mapping between Twilio Media Streams events and ElevenLabs agent messages.

Every function here reads the call session but never writes to it: the
result of translating a frame is a list of effects that the bridge applies
in order. One inbound frame yields at most one outbound frame, so audio and
``clear`` frames keep their arrival order.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from bridge.errors import ProtocolError
from bridge.session import CallSession

LOGGER = logging.getLogger(__name__)

PROMPT_PARAM = "prompt"
FIRST_MESSAGE_PARAM = "first_message"
FORWARD_TO_PARAM = "forward_to"

# Parameters consumed by the bridge itself rather than exposed to the agent.
_RESERVED_PARAMS = {PROMPT_PARAM, FIRST_MESSAGE_PARAM}


@dataclass(frozen=True)
class StreamStarted:
    stream_sid: str
    call_sid: str
    custom_parameters: Mapping[str, str]


@dataclass(frozen=True)
class SendToAgent:
    payload: dict[str, Any]


@dataclass(frozen=True)
class SendToTelephony:
    payload: dict[str, Any]


@dataclass(frozen=True)
class CloseCall:
    reason: str


@dataclass(frozen=True)
class RequestTransfer:
    call_sid: str | None
    target_number: str | None
    tool_call_id: str | None = None


Effect = Union[StreamStarted, SendToAgent, SendToTelephony, CloseCall, RequestTransfer]


@dataclass(frozen=True)
class ConversationDefaults:
    """Fallbacks for calls whose stream parameters omit the prompt or opening line."""

    prompt: str
    first_message: str


def parse_frame(text: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"Invalid JSON frame: {exc}") from exc
    if not isinstance(message, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(message).__name__}")
    return message


def _section(message: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = message.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ProtocolError(f"{key} is not an object")
    return value


def translate_telephony_event(session: CallSession, message: Mapping[str, Any]) -> list[Effect]:
    event = message.get("event")

    if event == "start":
        start = _section(message, "start")
        stream_sid = start.get("streamSid") or message.get("streamSid")
        call_sid = start.get("callSid")
        if not isinstance(stream_sid, str) or not isinstance(call_sid, str) or not stream_sid or not call_sid:
            raise ProtocolError("start event without streamSid/callSid")
        params = _section(start, "customParameters")
        return [StreamStarted(stream_sid=stream_sid, call_sid=call_sid, custom_parameters=params)]

    if event == "media":
        payload = _section(message, "media").get("payload")
        if not isinstance(payload, str):
            raise ProtocolError("media event without payload")
        if session.stream_sid is None:
            # No stream to attach the audio to yet.
            return []
        return [SendToAgent({"user_audio_chunk": payload})]

    if event == "stop":
        LOGGER.info("[Twilio] Stream %s ended", session.stream_sid)
        return [CloseCall(reason="twilio stop")]

    LOGGER.debug("[Twilio] Unhandled event: %s", event)
    return []


def _agent_audio_payload(message: Mapping[str, Any]) -> str | None:
    payload = _section(message, "audio").get("chunk") or _section(message, "audio_event").get("audio_base_64")
    if payload is None or payload == "":
        return None
    if not isinstance(payload, str):
        raise ProtocolError("audio payload is not a string")
    return payload


def translate_agent_event(session: CallSession, message: Mapping[str, Any]) -> list[Effect]:
    message_type = message.get("type")

    if message_type == "conversation_initiation_metadata":
        LOGGER.info("[ElevenLabs] Received initiation metadata for call %s", session.call_sid)
        return []

    if message_type == "audio":
        if session.stream_sid is None:
            LOGGER.info("[ElevenLabs] Received audio but no StreamSid yet")
            return []
        payload = _agent_audio_payload(message)
        if payload is None:
            return []
        return [
            SendToTelephony(
                {"event": "media", "streamSid": session.stream_sid, "media": {"payload": payload}}
            )
        ]

    if message_type == "interruption":
        if session.stream_sid is None:
            return []
        return [SendToTelephony({"event": "clear", "streamSid": session.stream_sid})]

    if message_type == "ping":
        event_id = _section(message, "ping_event").get("event_id")
        if event_id is None:
            return []
        return [SendToAgent({"type": "pong", "event_id": event_id})]

    if message_type == "user_transcript":
        transcript = _section(message, "user_transcription_event").get("user_transcript")
        LOGGER.info("[ElevenLabs] User (%s): %s", session.call_sid, transcript)
        return []

    if message_type == "agent_response":
        response = _section(message, "agent_response_event").get("agent_response")
        LOGGER.info("[ElevenLabs] Agent (%s): %s", session.call_sid, response)
        return []

    if message_type == "agent_response_correction":
        correction = _section(message, "agent_response_correction_event")
        LOGGER.info(
            "[ElevenLabs] Agent correction (%s): %s",
            session.call_sid,
            correction.get("corrected_agent_response"),
        )
        return []

    if message_type == "tool_request":
        tool_name = _section(message, "tool_request").get("tool_name")
        LOGGER.info("[ElevenLabs] Tool request: %s", tool_name)
        return []

    if message_type == "client_tool_call":
        tool_call = _section(message, "client_tool_call")
        LOGGER.info(
            "[ElevenLabs] Client tool call %s on call %s", tool_call.get("tool_name"), session.call_sid
        )
        return [
            RequestTransfer(
                call_sid=session.call_sid,
                target_number=session.parameter(FORWARD_TO_PARAM),
                tool_call_id=tool_call.get("tool_call_id"),
            )
        ]

    LOGGER.debug("[ElevenLabs] Unhandled message type: %s", message_type)
    return []


def build_initiation_payload(session: CallSession, defaults: ConversationDefaults) -> dict[str, Any]:
    """Build the ``conversation_initiation_client_data`` message for a started call."""

    dynamic_variables = {
        key: value
        for key, value in session.custom_parameters.items()
        if key not in _RESERVED_PARAMS and str(value).strip()
    }
    return {
        "type": "conversation_initiation_client_data",
        "conversation_config_override": {
            "agent": {
                "prompt": {"prompt": session.parameter(PROMPT_PARAM, defaults.prompt)},
                "first_message": session.parameter(FIRST_MESSAGE_PARAM, defaults.first_message),
            }
        },
        "dynamic_variables": dynamic_variables,
    }
