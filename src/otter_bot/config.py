"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Annotated, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, BeforeValidator, Field, field_validator

DEFAULT_PROVIDER_ID = "openai"

# an interpolated variable that is unset leaves a bare YAML null behind
Secret = Annotated[str, BeforeValidator(lambda v: "" if v is None else v)]


class DiscordConfig(BaseModel):
    token: Secret = ""


class AIConfig(BaseModel):
    default_provider: str = DEFAULT_PROVIDER_ID
    conversation_timeout: int = 300  # seconds of idle time before a channel's state expires
    history_limit: int = 10
    timezone: str = "UTC"
    serialize_turns: bool = True

    @field_validator("default_provider", mode="before")
    @classmethod
    def _default_when_blank(cls, value: Optional[str]) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_PROVIDER_ID
        return str(value).strip().lower()

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value!r}") from e
        return value


class OpenAIConfig(BaseModel):
    api_key: Secret = ""
    model: str = "gpt-5.1"
    image_model: str = "dall-e-3"
    base_url: Optional[str] = None
    timeout: int = 120


class GrokConfig(BaseModel):
    api_key: Secret = ""
    model: str = "grok-4-1-fast-reasoning"
    base_url: str = "https://api.x.ai/v1"
    timeout: int = 120


class GeminiConfig(BaseModel):
    api_key: Secret = ""
    model: str = "gemini-2.5-pro"
    image_model: str = "gemini-2.5-flash-image"


class AnthropicConfig(BaseModel):
    api_key: Secret = ""
    model: str = "claude-sonnet-4-20250514"
    base_url: Optional[str] = None
    max_tokens: int = 4096
    max_retries: int = 3
    timeout: int = 120


class ProvidersConfig(BaseModel):
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    grok: GrokConfig = Field(default_factory=GrokConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_json: bool = False
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values.

    Unset variables become empty strings, so a credential that is not exported
    leaves its provider disabled instead of holding a literal placeholder.
    """

    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")
    data = yaml.safe_load(_interpolate_env_vars(raw_text)) or {}

    return AppConfig(**data)
