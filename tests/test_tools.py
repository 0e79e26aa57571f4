"""Tests for the host-executed tools and the tool catalog."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeChannel, ScriptedProvider, make_mention

from otter_bot.ai.providers.registry import ProviderLoader, ProviderRegistry
from otter_bot.ai.tools.generate_image import GenerateImageTool
from otter_bot.ai.tools.registry import ToolCatalog
from otter_bot.ai.tools.summarize import SummarizeMessagesTool
from otter_bot.ai.tools.switch_provider import SwitchProviderTool
from otter_bot.ai.types import ToolContext, ToolKind


def _context(provider, registry=None, channel=None) -> ToolContext:
    message = make_mention()
    switch = registry.set_for_channel if registry is not None else MagicMock()
    return ToolContext(
        message=message,
        channel=channel or FakeChannel(),
        provider_id=provider.id,
        provider=provider,
        switch_provider=lambda provider_id: switch(message.channel_id, provider_id),
    )


def _registry(*providers) -> ProviderRegistry:
    return ProviderRegistry(
        [ProviderLoader(p.id, "key", "KEY", lambda p=p: p) for p in providers],
        default_provider_id=providers[0].id,
    )


class TestToolCatalog:
    def test_builtin_tools(self):
        catalog = ToolCatalog()
        catalog.discover_and_register()

        names = [tool.name for tool in catalog.all_tools()]

        assert names == ["summarize_messages", "generate_image", "switch_provider"]

    def test_provider_definitions_are_host_handled_functions(self):
        catalog = ToolCatalog()
        catalog.discover_and_register()

        definitions = catalog.provider_definitions()

        assert all(d.kind == ToolKind.FUNCTION and d.host_handled for d in definitions)
        summarize = next(d for d in definitions if d.name == "summarize_messages")
        assert summarize.parameters["required"] == ["start_time", "end_time"]

    def test_get_unknown(self):
        assert ToolCatalog().get("nope") is None


class TestSwitchProviderTool:
    @pytest.mark.asyncio
    async def test_switches_and_reports_display_name(self):
        openai = ScriptedProvider("openai", [])
        gemini = ScriptedProvider("gemini", [])
        registry = _registry(openai, gemini)

        result = await SwitchProviderTool().execute(_context(openai, registry), {"provider_id": "gemini"})

        assert result == 'Switched to provider "Gemini" for this channel while keeping the existing context.'
        assert registry.active_provider_id("chan-1") == "gemini"

    @pytest.mark.asyncio
    async def test_unregistered_provider_returns_error_text(self):
        openai = ScriptedProvider("openai", [])
        registry = _registry(openai)

        result = await SwitchProviderTool().execute(_context(openai, registry), {"provider_id": "llama"})

        assert result == 'Provider "llama" is not registered.'
        assert registry.active_provider_id("chan-1") == "openai"

    @pytest.mark.asyncio
    async def test_missing_provider_id(self):
        openai = ScriptedProvider("openai", [])
        registry = _registry(openai)

        result = await SwitchProviderTool().execute(_context(openai, registry), {"provider_id": "  "})

        assert result == "Please provide a provider_id to switch to."


class TestSummarizeMessagesTool:
    @pytest.mark.asyncio
    async def test_delegates_to_provider(self):
        provider = ScriptedProvider("openai", [])
        provider.summarize_messages = AsyncMock(return_value="summary text")
        ctx = _context(provider)

        result = await SummarizeMessagesTool().execute(
            ctx, {"start_time": "2025-10-03T00:00:00Z", "end_time": "2025-10-03T12:00:00Z"}
        )

        assert result == "summary text"
        provider.summarize_messages.assert_awaited_once_with(
            ctx.channel, "2025-10-03T00:00:00Z", "2025-10-03T12:00:00Z"
        )

    @pytest.mark.asyncio
    async def test_unsupported_provider(self):
        provider = MagicMock(id="basic", supports_summarize=False)

        result = await SummarizeMessagesTool().execute(_context(provider), {"start_time": "", "end_time": ""})

        assert result == "This provider does not support summarizing messages."


class TestGenerateImageTool:
    @pytest.mark.asyncio
    async def test_prefers_local_generator(self):
        generator = MagicMock()
        generator.generate = AsyncMock(return_value="Generated a new image and sent it.")
        provider = MagicMock(id="grok", local_image_generator=generator, supports_image_generation=True)
        provider.generate_image = AsyncMock()
        ctx = _context(provider)

        result = await GenerateImageTool().execute(ctx, {"prompt": "an otter", "refine_previous": True})

        assert result == "Generated a new image and sent it."
        generator.generate.assert_awaited_once_with(ctx.channel, "an otter", refine_previous=True)
        provider.generate_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_provider_endpoint(self):
        provider = MagicMock(id="openai", local_image_generator=None, supports_image_generation=True)
        provider.generate_image = AsyncMock(return_value="done")
        ctx = _context(provider)

        result = await GenerateImageTool().execute(ctx, {"prompt": "an otter"})

        assert result == "done"
        provider.generate_image.assert_awaited_once_with(ctx.channel, "an otter")

    @pytest.mark.asyncio
    async def test_no_image_support(self):
        provider = MagicMock(id="anthropic", local_image_generator=None, supports_image_generation=False)

        result = await GenerateImageTool().execute(_context(provider), {"prompt": "an otter"})

        assert result == "This provider does not support image generation."
