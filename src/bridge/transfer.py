"""Hand an active call to a person through a Twilio conference."""

from __future__ import annotations

import asyncio
import logging

from bridge.errors import TransferFailure
from integrations.twilio_client import TwilioConfig
from integrations.twiml import twiml_agent_conference, twiml_caller_conference

LOGGER = logging.getLogger(__name__)


def conference_name(call_sid: str) -> str:
    return f"transfer-{call_sid}"


class TransferOrchestrator:
    """Moves the caller into a named conference and dials the human agent into it.

    Best effort: each step is a Twilio REST call run off the event loop, a
    failing step is logged and nothing is retried or rolled back. The caller
    may therefore be left waiting in the conference if dialing the agent fails.
    """

    def __init__(self, twilio_client, cfg: TwilioConfig) -> None:
        self._client = twilio_client
        self._cfg = cfg

    async def transfer(self, call_sid: str, target_number: str) -> None:
        if not target_number:
            LOGGER.warning("[Transfer] No forward-to number for call %s; skipping transfer", call_sid)
            return

        try:
            await self._transfer(call_sid, target_number)
        except TransferFailure as exc:
            LOGGER.error("[Transfer] Call %s: %s", call_sid, exc.detail)

    async def _transfer(self, call_sid: str, target_number: str) -> None:
        name = conference_name(call_sid)

        try:
            call = await asyncio.to_thread(self._client.calls(call_sid).fetch)
        except Exception as exc:
            raise TransferFailure(f"fetching call metadata failed: {exc}") from exc

        party_number = getattr(call, "to", None)
        LOGGER.info(
            "[Transfer] Moving call %s (party %s) into conference %s", call_sid, party_number, name
        )

        try:
            await asyncio.to_thread(
                self._client.calls(call_sid).update,
                twiml=twiml_caller_conference(name),
            )
        except Exception as exc:
            raise TransferFailure(f"moving caller into conference failed: {exc}") from exc

        try:
            agent_call = await asyncio.to_thread(
                self._client.calls.create,
                to=target_number,
                from_=self._cfg.from_number,
                twiml=twiml_agent_conference(name),
            )
        except Exception as exc:
            raise TransferFailure(f"dialing {target_number} failed: {exc}") from exc

        LOGGER.info(
            "[Transfer] Dialed %s into conference %s (agent call %s)", target_number, name, agent_call.sid
        )
