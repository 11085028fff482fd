"""Media bridge: owns the Twilio and ElevenLabs sockets of one call."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from bridge.errors import ProtocolError, SetupFailure
from bridge.session import CallSession
from bridge.transfer import TransferOrchestrator
from bridge.translator import (
    CloseCall,
    ConversationDefaults,
    Effect,
    RequestTransfer,
    SendToAgent,
    SendToTelephony,
    StreamStarted,
    build_initiation_payload,
    parse_frame,
    translate_agent_event,
    translate_telephony_event,
)
from integrations.elevenlabs import AgentConnection, AgentConnector, ConnectionState

LOGGER = logging.getLogger(__name__)

# Strong references for transfers, which keep running after their bridge is gone.
_RUNNING_TRANSFERS: set[asyncio.Task] = set()


class MediaBridge:
    """Relays one call between Twilio Media Streams and the ElevenLabs agent.

    The bridge is the only writer to its session and to both sockets. The
    Twilio socket is pumped in the task calling ``run()``; the agent leg
    (signed-URL fetch, connect, receive loop) runs in a second task so the
    two setup paths race independently. The initiation payload goes out once
    both the agent socket is open and the stream has started.

    Closing is idempotent: a Twilio ``stop``, either socket going away or an
    unexpected error all end in ``close()``, which closes whatever is still
    open. Transfers run as background tasks and outlive the bridge.
    """

    def __init__(
        self,
        telephony_ws: WebSocket,
        connector: AgentConnector,
        orchestrator: TransferOrchestrator,
        defaults: ConversationDefaults,
        *,
        fallback_transfer_number: str | None = None,
    ) -> None:
        self.session = CallSession()
        self._telephony = telephony_ws
        self._telephony_open = True
        self._connector = connector
        self._orchestrator = orchestrator
        self._defaults = defaults
        self._fallback_transfer_number = fallback_transfer_number
        self._agent: AgentConnection | None = None
        self._agent_failed = False
        self._agent_task: asyncio.Task | None = None
        self._initiation_sent = False

    @property
    def agent_state(self) -> ConnectionState:
        if self._agent is not None:
            return self._agent.state
        if self._agent_failed or self.session.is_closed:
            return ConnectionState.CLOSED
        return ConnectionState.CONNECTING

    async def run(self) -> None:
        self._agent_task = asyncio.create_task(self._run_agent_leg())
        try:
            await self._pump_telephony()
        except Exception:
            LOGGER.exception("[Twilio] Bridge for call %s failed", self.session.call_sid)
        finally:
            await self.close("telephony loop ended")
            (outcome,) = await asyncio.gather(self._agent_task, return_exceptions=True)
            if isinstance(outcome, Exception):
                LOGGER.error("[ElevenLabs] Agent leg for call %s failed: %r", self.session.call_sid, outcome)

    async def close(self, reason: str) -> None:
        agent_state = self.agent_state
        if not self.session.close():
            return
        LOGGER.info(
            "Closing call %s (stream %s, agent %s): %s",
            self.session.call_sid,
            self.session.stream_sid,
            agent_state.value,
            reason,
        )

        if self._agent is not None:
            await self._agent.close()
        await self._close_telephony()

        task = self._agent_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    # Twilio side

    async def _pump_telephony(self) -> None:
        LOGGER.info("[Twilio] Connected to outbound media stream")
        while not self.session.is_closed:
            message = await self._telephony.receive()
            if message["type"] == "websocket.disconnect":
                self._telephony_open = False
                LOGGER.info("[Twilio] Client disconnected")
                return
            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes") or b""
            await self._handle_telephony_frame(frame)

    async def _handle_telephony_frame(self, text: str | bytes) -> None:
        try:
            message = parse_frame(text)
            LOGGER.debug("[Twilio] Received event: %s", message.get("event"))
            await self._apply(translate_telephony_event(self.session, message))
        except ProtocolError as exc:
            LOGGER.warning("[Twilio] Dropping frame on call %s: %s", self.session.call_sid, exc.detail)

    async def _send_telephony(self, payload: dict[str, Any]) -> None:
        if not self._telephony_open:
            return
        try:
            await self._telephony.send_text(json.dumps(payload))
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            LOGGER.warning("[Twilio] Send failed on call %s: %s", self.session.call_sid, exc)
            self._telephony_open = False
            await self.close("telephony send failed")

    async def _close_telephony(self) -> None:
        if not self._telephony_open:
            return
        self._telephony_open = False
        try:
            await self._telephony.close()
        except RuntimeError as exc:
            # Starlette refuses a second close once the client has gone.
            LOGGER.debug("[Twilio] Socket already closed: %s", exc)

    # ElevenLabs side

    async def _run_agent_leg(self) -> None:
        try:
            connection = await self._connector.connect()
        except SetupFailure as exc:
            # The call goes on without agent audio.
            self._agent_failed = True
            LOGGER.error("[ElevenLabs] Setup error for call %s: %s", self.session.call_sid, exc.detail)
            return

        if self.session.is_closed:
            await connection.close()
            return
        self._agent = connection
        await self._maybe_send_initiation()

        try:
            async for text in connection:
                await self._handle_agent_frame(text)
        except Exception:
            LOGGER.exception("[ElevenLabs] Agent loop for call %s failed", self.session.call_sid)

        LOGGER.info("[ElevenLabs] Disconnected")
        await self.close("agent disconnected")

    async def _handle_agent_frame(self, text: str) -> None:
        try:
            message = parse_frame(text)
            await self._apply(translate_agent_event(self.session, message))
        except ProtocolError as exc:
            LOGGER.warning("[ElevenLabs] Dropping frame on call %s: %s", self.session.call_sid, exc.detail)

    async def _send_agent(self, payload: dict[str, Any]) -> None:
        if self._agent is None:
            return
        await self._agent.send_json(payload)

    async def _maybe_send_initiation(self) -> None:
        if self._initiation_sent or self._agent is None or not self._agent.is_open:
            return
        if not self.session.is_streaming:
            return

        self._initiation_sent = True
        payload = build_initiation_payload(self.session, self._defaults)
        LOGGER.info(
            "[ElevenLabs] Sending initial config with prompt: %s",
            payload["conversation_config_override"]["agent"]["prompt"]["prompt"],
        )
        await self._agent.send_json(payload)

    # Effects

    async def _apply(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, StreamStarted):
                self.session.start(effect.stream_sid, effect.call_sid, effect.custom_parameters)
                LOGGER.info(
                    "[Twilio] Stream started - StreamSid: %s, CallSid: %s", effect.stream_sid, effect.call_sid
                )
                LOGGER.info("[Twilio] Start parameters: %s", dict(self.session.custom_parameters))
                await self._maybe_send_initiation()
            elif isinstance(effect, SendToAgent):
                await self._send_agent(effect.payload)
            elif isinstance(effect, SendToTelephony):
                await self._send_telephony(effect.payload)
            elif isinstance(effect, CloseCall):
                await self.close(effect.reason)
            elif isinstance(effect, RequestTransfer):
                await self._start_transfer(effect)

    async def _start_transfer(self, request: RequestTransfer) -> None:
        if request.call_sid is None:
            LOGGER.warning("[Transfer] Tool call before the stream started; ignoring")
            await self._send_tool_result(request, "The call is not connected yet.", is_error=True)
            return

        target = request.target_number or self._fallback_transfer_number
        if not target:
            LOGGER.warning("[Transfer] Call %s has no forward-to number; ignoring", request.call_sid)
            await self._send_tool_result(request, "No number is available to transfer to.", is_error=True)
            return
        if not self.session.begin_transfer():
            LOGGER.info("[Transfer] Call %s is %s; not transferring again", request.call_sid, self.session.phase.value)
            await self._send_tool_result(request, "The call is already being transferred.", is_error=True)
            return

        task = asyncio.create_task(self._orchestrator.transfer(request.call_sid, target))
        _RUNNING_TRANSFERS.add(task)
        task.add_done_callback(_RUNNING_TRANSFERS.discard)

        await self._send_tool_result(request, "Transferring the caller to a human agent.", is_error=False)

    async def _send_tool_result(self, request: RequestTransfer, result: str, *, is_error: bool) -> None:
        if not request.tool_call_id:
            return
        await self._send_agent(
            {
                "type": "client_tool_result",
                "tool_call_id": request.tool_call_id,
                "result": result,
                "is_error": is_error,
            }
        )
