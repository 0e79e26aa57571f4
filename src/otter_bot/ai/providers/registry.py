"""Registry of configured AI providers and per-channel provider pinning."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from otter_bot.ai.providers.base import AiProvider
from otter_bot.config import DEFAULT_PROVIDER_ID, ProvidersConfig
from otter_bot.log import get_logger

if TYPE_CHECKING:
    from otter_bot.ai.image import LocalImageGenerator
    from otter_bot.ai.types import ProviderToolDefinition

logger = get_logger(__name__)


class ProviderNotRegisteredError(LookupError):
    def __init__(self, provider_id: str):
        super().__init__(f'Provider "{provider_id}" is not registered.')
        self.provider_id = provider_id

    def __str__(self) -> str:
        return str(self.args[0])


@dataclass(frozen=True)
class ProviderLoader:
    """How to build one backend once its credential is known to be present."""

    provider_id: str
    credential: str
    credential_name: str
    factory: Callable[[], AiProvider]


class ProviderRegistry:
    """Catalog of provider adapters plus the channel -> provider pin table."""

    def __init__(
        self,
        loaders: Iterable[ProviderLoader],
        default_provider_id: str = DEFAULT_PROVIDER_ID,
        pins: Optional[dict[str, str]] = None,
    ):
        self._loaders = list(loaders)
        self._default_provider_id = default_provider_id
        self._pins: dict[str, str] = pins if pins is not None else {}
        self._providers: dict[str, AiProvider] = {}
        self._registered = False

    @property
    def default_provider_id(self) -> str:
        return self._default_provider_id

    def ensure_registered(self) -> None:
        """Build every adapter whose credential is present. Runs once; later calls are no-ops."""
        if self._registered:
            return
        self._registered = True

        for loader in self._loaders:
            if not loader.credential:
                logger.warning(
                    "provider_credential_missing",
                    provider_id=loader.provider_id,
                    credential=loader.credential_name,
                )
                continue
            self._providers[loader.provider_id] = loader.factory()
            logger.info("provider_registered", provider_id=loader.provider_id)

        if self._providers and self._default_provider_id not in self._providers:
            logger.warning(
                "default_provider_unavailable",
                default_provider=self._default_provider_id,
                registered=sorted(self._providers),
            )

    def list_providers(self) -> list[AiProvider]:
        self.ensure_registered()
        return list(self._providers.values())

    def get(self, provider_id: Optional[str] = None) -> AiProvider | None:
        """Look up a provider, falling back to the default when the id is empty or unknown."""
        self.ensure_registered()
        if provider_id and provider_id in self._providers:
            return self._providers[provider_id]
        return self._providers.get(self._default_provider_id)

    def active_provider_id(self, channel_id: str) -> str:
        return self._pins.get(channel_id, self._default_provider_id)

    def get_for_channel(self, channel_id: str) -> AiProvider | None:
        return self.get(self.active_provider_id(channel_id))

    def set_for_channel(self, channel_id: str, provider_id: str) -> AiProvider:
        """Pin *provider_id* to the channel; raises ProviderNotRegisteredError for unknown ids."""
        self.ensure_registered()
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotRegisteredError(provider_id)
        self._pins[channel_id] = provider_id
        logger.info("provider_pinned", channel_id=channel_id, provider_id=provider_id)
        return provider


def build_provider_loaders(
    config: ProvidersConfig,
    host_tools: list[ProviderToolDefinition],
    image_generator: Optional[LocalImageGenerator] = None,
) -> list[ProviderLoader]:
    """Loaders for every backend this bot knows; SDK clients are imported lazily."""

    def _openai() -> AiProvider:
        from otter_bot.ai.providers.openai_provider import OpenAIProvider

        return OpenAIProvider(config.openai, host_tools)

    def _grok() -> AiProvider:
        from otter_bot.ai.providers.openai_provider import GrokProvider

        return GrokProvider(config.grok, host_tools, image_generator)

    def _gemini() -> AiProvider:
        from otter_bot.ai.providers.gemini_provider import GeminiProvider

        return GeminiProvider(config.gemini, host_tools, image_generator)

    def _anthropic() -> AiProvider:
        from otter_bot.ai.providers.anthropic_provider import AnthropicProvider

        return AnthropicProvider(config.anthropic, host_tools, image_generator)

    return [
        ProviderLoader("openai", config.openai.api_key, "OPENAI_API_KEY", _openai),
        ProviderLoader("grok", config.grok.api_key, "XAI_API_KEY", _grok),
        ProviderLoader("gemini", config.gemini.api_key, "GOOGLE_API_KEY", _gemini),
        ProviderLoader("anthropic", config.anthropic.api_key, "ANTHROPIC_API_KEY", _anthropic),
    ]
