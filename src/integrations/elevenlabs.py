"""ElevenLabs Conversational AI connectivity: signed-URL fetch and agent socket."""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidHandshake, InvalidURI

from bridge.errors import SetupFailure
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

SIGNED_URL_PATH = "/v1/convai/conversation/get_signed_url"


@dataclass(frozen=True)
class AgentConfig:
    api_key: str
    agent_id: str
    api_base: str
    timeout_seconds: float


def get_agent_config(settings: Settings | None = None) -> AgentConfig:
    settings = settings or get_settings()
    if not settings.elevenlabs_api_key or not settings.elevenlabs_agent_id:
        raise ValueError("ElevenLabs API key and agent id are not configured")

    return AgentConfig(
        api_key=settings.elevenlabs_api_key,
        agent_id=settings.elevenlabs_agent_id,
        api_base=settings.elevenlabs_api_base.rstrip("/"),
        timeout_seconds=settings.elevenlabs_signed_url_timeout_seconds,
    )


class SignedUrlClient:
    """Fetches a single-use signed socket URL for the configured agent."""

    def __init__(self, config: AgentConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport

    async def get_signed_url(self) -> str:
        async with httpx.AsyncClient(
            base_url=self._config.api_base,
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(
                    SIGNED_URL_PATH,
                    params={"agent_id": self._config.agent_id},
                    headers={"xi-api-key": self._config.api_key},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise SetupFailure(
                    f"Failed to get signed URL: {exc.response.status_code} {exc.response.reason_phrase}"
                ) from exc
            except httpx.HTTPError as exc:
                raise SetupFailure(f"Failed to get signed URL: {exc}") from exc

        try:
            signed_url = response.json()["signed_url"]
        except (ValueError, KeyError, TypeError) as exc:
            raise SetupFailure("Signed URL response did not contain signed_url") from exc
        if not signed_url:
            raise SetupFailure("Signed URL response contained an empty signed_url")
        return str(signed_url)


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class AgentConnection:
    """One socket to the agent. Once closed it is never reopened."""

    def __init__(self, ws: Any) -> None:
        self._ws = ws
        self.state = ConnectionState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def send_json(self, payload: dict[str, Any]) -> None:
        if not self.is_open:
            LOGGER.debug("[ElevenLabs] Dropping %s on a closed connection", payload.get("type", "audio"))
            return
        try:
            await self._ws.send(json.dumps(payload))
        except ConnectionClosed:
            self.state = ConnectionState.CLOSED

    async def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        await self._ws.close()

    async def __aiter__(self) -> AsyncIterator[str]:
        try:
            async for message in self._ws:
                yield message
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as exc:
            LOGGER.warning("[ElevenLabs] WebSocket error: %s", exc)
        finally:
            self.state = ConnectionState.CLOSED


class AgentConnector:
    """Opens authenticated agent sockets; one fetch and one socket per call."""

    def __init__(self, signed_urls: SignedUrlClient) -> None:
        self._signed_urls = signed_urls

    async def connect(self) -> AgentConnection:
        signed_url = await self._signed_urls.get_signed_url()
        try:
            ws = await websockets.connect(signed_url)
        except (OSError, InvalidHandshake, InvalidURI) as exc:
            raise SetupFailure(f"Agent socket handshake failed: {exc}") from exc
        LOGGER.info("[ElevenLabs] Connected to Conversational AI")
        return AgentConnection(ws)
