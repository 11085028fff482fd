"""Shared FastAPI dependencies.

Clients built here are stateless and reused by every call in the process;
tests replace them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from bridge.transfer import TransferOrchestrator
from bridge.translator import ConversationDefaults
from config.settings import get_settings
from integrations.elevenlabs import AgentConnector, SignedUrlClient, get_agent_config
from integrations.twilio_client import TwilioConfig, build_twilio_client, get_twilio_config
from llm.factory import build_llm_client
from llm.opening_line import OpeningLineGenerator
from prompts.loader import load_prompt


def get_twilio_cfg() -> TwilioConfig:
    return get_twilio_config()


@lru_cache(maxsize=1)
def _twilio_client_factory():
    return build_twilio_client(get_twilio_config())


def get_twilio_client():
    return _twilio_client_factory()


@lru_cache(maxsize=1)
def get_agent_connector() -> AgentConnector:
    return AgentConnector(SignedUrlClient(get_agent_config()))


@lru_cache(maxsize=1)
def get_transfer_orchestrator() -> TransferOrchestrator:
    return TransferOrchestrator(_twilio_client_factory(), get_twilio_config())


@lru_cache(maxsize=1)
def get_conversation_defaults() -> ConversationDefaults:
    settings = get_settings()
    return ConversationDefaults(
        prompt=load_prompt(settings.default_prompt_file),
        first_message=settings.default_first_message,
    )


@lru_cache(maxsize=1)
def get_opening_line_generator() -> OpeningLineGenerator:
    settings = get_settings()
    return OpeningLineGenerator(build_llm_client(settings), temperature=settings.opening_line_temperature)
