"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bridge.errors import ConfigurationError


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # ElevenLabs Conversational AI
    elevenlabs_api_key: str | None = Field(default=None)
    elevenlabs_agent_id: str | None = Field(default=None)
    elevenlabs_api_base: str = Field(default="https://api.elevenlabs.io")
    elevenlabs_signed_url_timeout_seconds: float = Field(default=10.0, gt=0)

    # Twilio (Voice)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_from_number: str | None = Field(default=None, description="E.164, e.g. +1415...")
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio callbacks (e.g. https://<ngrok>.ngrok-free.app).",
    )

    # Conversation defaults
    default_prompt_file: str = Field(
        default="default_prompt.txt",
        description="Prompt file under prompts/ used when a call carries no prompt.",
    )
    default_first_message: str = Field(
        default=(
            "Hi, this is Jordan calling about the damage report you sent us. "
            "Do you have a couple of minutes to go over it?"
        )
    )
    transfer_fallback_number: str | None = Field(
        default=None,
        description="Forward-to number used when a call was placed without one.",
    )

    # Opening line generation
    llm_provider: Literal["openai", "none"] = Field(default="openai")
    llm_endpoint: str | None = Field(default=None)
    llm_api_key: str | None = Field(default=None)
    llm_model: str = Field(default="gpt-4o-mini")
    opening_line_temperature: float = Field(default=0.7, ge=0.0, le=2.0)


REQUIRED_CALL_SETTINGS: tuple[str, ...] = (
    "elevenlabs_api_key",
    "elevenlabs_agent_id",
    "twilio_account_sid",
    "twilio_auth_token",
    "twilio_from_number",
)


def require_call_settings(settings: Settings) -> None:
    """Fail fast when any setting needed to place and bridge calls is missing."""

    missing = [name.upper() for name in REQUIRED_CALL_SETTINGS if not getattr(settings, name)]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
