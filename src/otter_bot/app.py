"""Application wiring - builds every component and manages the bot lifecycle."""

from __future__ import annotations

from typing import Optional

from otter_bot.ai.conversation_store import ConversationStore
from otter_bot.ai.image import LastImageCache, LocalImageGenerator
from otter_bot.ai.orchestrator import AgentOrchestrator
from otter_bot.ai.providers.registry import ProviderRegistry, build_provider_loaders
from otter_bot.ai.tools.registry import ToolCatalog
from otter_bot.config import AppConfig
from otter_bot.log import get_logger
from otter_bot.messenger.base import MessengerAdapter

logger = get_logger(__name__)


def build_image_generator(config: AppConfig, cache: LastImageCache) -> Optional[LocalImageGenerator]:
    """The local generator rides on the Gemini credential; without it there is none."""
    gemini = config.providers.gemini
    if not gemini.api_key:
        return None
    return LocalImageGenerator(api_key=gemini.api_key, model=gemini.image_model, cache=cache)


class OtterBotApp:
    """Top-level application object."""

    def __init__(self, config: AppConfig, adapter: Optional[MessengerAdapter] = None):
        self.config = config
        self.store = ConversationStore(timeout_seconds=config.ai.conversation_timeout)
        self.image_cache = LastImageCache()
        self.tool_catalog = ToolCatalog()
        self.tool_catalog.discover_and_register()
        self.registry = ProviderRegistry(
            build_provider_loaders(
                config.providers,
                self.tool_catalog.provider_definitions(),
                build_image_generator(config, self.image_cache),
            ),
            default_provider_id=config.ai.default_provider,
        )
        self.orchestrator = AgentOrchestrator(
            registry=self.registry,
            catalog=self.tool_catalog,
            store=self.store,
            timezone=config.ai.timezone,
            history_limit=config.ai.history_limit,
            serialize_turns=config.ai.serialize_turns,
        )
        self.adapter = adapter or self._create_adapter()

    async def start(self) -> None:
        self.registry.ensure_registered()
        self.adapter.on_mention(self.orchestrator.handle_mention)
        await self.adapter.start()
        logger.info(
            "otter_bot_started",
            platform=self.adapter.platform_name,
            providers=[p.id for p in self.registry.list_providers()],
            default_provider=self.registry.default_provider_id,
        )

    async def stop(self) -> None:
        try:
            await self.adapter.stop()
        except Exception as e:
            logger.error("adapter_stop_error", error=str(e))
        logger.info("otter_bot_stopped")

    def _create_adapter(self) -> MessengerAdapter:
        from otter_bot.messenger.discord_adapter import DiscordAdapter

        return DiscordAdapter(self.config.discord.token)
