"""Tests for the Responses-API adapters (OpenAI and Grok)."""

import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeChannel

from otter_bot.ai.providers.openai_provider import GrokProvider, OpenAIProvider, ResponsesApiProvider
from otter_bot.ai.tools.registry import ToolCatalog
from otter_bot.ai.types import (
    ImagePart,
    MessageEntry,
    Role,
    TextPart,
    ToolCallEntry,
    ToolChoice,
    ToolResultEntry,
    text_message,
)
from otter_bot.config import GrokConfig, OpenAIConfig


@pytest.fixture
def host_tools():
    catalog = ToolCatalog()
    catalog.discover_and_register()
    return catalog.provider_definitions()


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.responses.create = AsyncMock(return_value=SimpleNamespace(output_text="Hello!", output=[]))
    client.images.generate = AsyncMock()
    return client


@pytest.fixture
def provider(host_tools, mock_client):
    return OpenAIProvider(OpenAIConfig(api_key="sk-test"), host_tools, client=mock_client)


class TestInputTranslation:
    def test_system_becomes_developer(self):
        item = ResponsesApiProvider.to_input_item(text_message(Role.SYSTEM, "rules"))
        assert item == {"role": "developer", "content": [{"type": "input_text", "text": "rules"}]}

    def test_assistant_uses_plain_text(self):
        item = ResponsesApiProvider.to_input_item(text_message(Role.ASSISTANT, "earlier answer"))
        assert item == {"role": "assistant", "content": "earlier answer"}

    def test_user_images(self):
        entry = MessageEntry(role=Role.USER, content=[TextPart("Bob: look"), ImagePart("https://cdn/x.png")])

        item = ResponsesApiProvider.to_input_item(entry)

        assert item["content"][1] == {"type": "input_image", "image_url": "https://cdn/x.png", "detail": "auto"}

    def test_empty_content_is_never_sent(self):
        item = ResponsesApiProvider.to_input_item(MessageEntry(role=Role.USER, content=[]))
        assert item["content"] == [{"type": "input_text", "text": ""}]

    def test_tool_call_and_result(self):
        call = ResponsesApiProvider.to_input_item(
            ToolCallEntry(id="call_1", name="switch_provider", arguments={"provider_id": "grok"})
        )
        result = ResponsesApiProvider.to_input_item(ToolResultEntry(id="call_1", name="switch_provider", content="ok"))

        assert call["type"] == "function_call"
        assert call["call_id"] == "call_1"
        assert json.loads(call["arguments"]) == {"provider_id": "grok"}
        assert result == {"type": "function_call_output", "call_id": "call_1", "output": "ok"}


class TestChat:
    @pytest.mark.asyncio
    async def test_request_shape(self, provider, mock_client):
        await provider.chat([text_message(Role.USER, "Alice: hi")], provider.supported_tools, ToolChoice.NONE)

        kwargs = mock_client.responses.create.call_args.kwargs
        assert kwargs["model"] == "gpt-5.1"
        assert kwargs["tool_choice"] == "none"
        assert kwargs["reasoning"] == {"effort": "low"}
        assert kwargs["text"] == {"verbosity": "low"}

        tool_types = [t["type"] for t in kwargs["tools"]]
        assert tool_types == ["function", "function", "function", "web_search", "code_interpreter"]
        assert kwargs["tools"][0]["strict"] is False

    @pytest.mark.asyncio
    async def test_no_tools_key_without_tools(self, provider, mock_client):
        await provider.chat([text_message(Role.USER, "hi")], [])

        assert "tools" not in mock_client.responses.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_text_reply(self, provider):
        response = await provider.chat([text_message(Role.USER, "hi")], [])

        assert response.text == "Hello!"
        assert response.tool_calls == []
        assert response.output_entries == [text_message(Role.ASSISTANT, "Hello!")]

    @pytest.mark.asyncio
    async def test_function_calls(self, provider, mock_client):
        mock_client.responses.create.return_value = SimpleNamespace(
            output_text="",
            output=[
                SimpleNamespace(type="reasoning"),
                SimpleNamespace(
                    type="function_call",
                    call_id="call_a",
                    name="summarize_messages",
                    arguments='{"start_time": "2025-10-03T00:00:00Z", "end_time": "2025-10-03T12:00:00Z"}',
                ),
                SimpleNamespace(type="function_call", call_id="call_b", name="generate_image", arguments="{oops"),
            ],
        )

        response = await provider.chat([text_message(Role.USER, "hi")], provider.supported_tools)

        assert response.text is None
        assert [c.id for c in response.tool_calls] == ["call_a", "call_b"]
        assert response.tool_calls[0].arguments["end_time"] == "2025-10-03T12:00:00Z"
        assert response.tool_calls[1].arguments == {}
        assert [e.id for e in response.output_entries] == ["call_a", "call_b"]

    @pytest.mark.asyncio
    async def test_missing_call_id_is_generated(self, provider, mock_client):
        mock_client.responses.create.return_value = SimpleNamespace(
            output_text=None,
            output=[SimpleNamespace(type="function_call", call_id=None, name="generate_image", arguments="{}")],
        )

        response = await provider.chat([text_message(Role.USER, "hi")], provider.supported_tools)

        assert response.tool_calls[0].id.startswith("call_")

    def test_text_falls_back_to_message_items(self):
        response = SimpleNamespace(
            output_text="",
            output=[
                SimpleNamespace(
                    type="message",
                    content=[SimpleNamespace(type="output_text", text="from the message item")],
                )
            ],
        )

        assert ResponsesApiProvider.extract_text(response) == "from the message item"


class TestSummarize:
    @pytest.mark.asyncio
    async def test_complete_is_tool_free(self, provider, mock_client):
        mock_client.responses.create.return_value = SimpleNamespace(output_text="summary", output=[])

        result = await provider._complete("system", "prompt")

        assert result == "summary"
        kwargs = mock_client.responses.create.call_args.kwargs
        assert "tools" not in kwargs
        assert kwargs["input"][0] == {"role": "developer", "content": "system"}


class TestImageGeneration:
    @pytest.mark.asyncio
    async def test_sends_image_to_channel(self, provider, mock_client):
        mock_client.images.generate.return_value = SimpleNamespace(
            data=[SimpleNamespace(b64_json=base64.b64encode(b"png-bytes").decode())]
        )
        channel = FakeChannel()

        result = await provider.generate_image(channel, "an otter")

        assert result == "The image was generated successfully and sent to the user."
        assert channel.replies[0].text == "Here is the image you requested."
        assert channel.replies[0].files[0].data == b"png-bytes"
        assert mock_client.images.generate.call_args.kwargs["model"] == "dall-e-3"

    @pytest.mark.asyncio
    async def test_no_image_data(self, provider, mock_client):
        mock_client.images.generate.return_value = SimpleNamespace(data=[])

        result = await provider.generate_image(FakeChannel(), "an otter")

        assert result == "I was unable to generate an image for that prompt."

    @pytest.mark.asyncio
    async def test_backend_error(self, provider, mock_client):
        mock_client.images.generate.side_effect = RuntimeError("content policy")
        channel = FakeChannel()

        result = await provider.generate_image(channel, "an otter")

        assert result.startswith("An error occurred while generating the image.")
        assert channel.replies == []


class TestGrok:
    @pytest.mark.asyncio
    async def test_continuation_is_encrypted_reasoning(self, host_tools, mock_client):
        mock_client.responses.create.return_value = SimpleNamespace(
            output_text="Bold answer.",
            output=[
                SimpleNamespace(type="reasoning", id="rs_1", encrypted_content="enc-blob"),
                SimpleNamespace(type="reasoning", id="rs_2", encrypted_content=None),
            ],
        )
        grok = GrokProvider(GrokConfig(api_key="xai-test"), host_tools, client=mock_client)

        response = await grok.chat([text_message(Role.USER, "hi")], grok.supported_tools)

        assert response.continuation == [
            {"type": "reasoning", "id": "rs_1", "summary": [], "encrypted_content": "enc-blob"}
        ]
        kwargs = mock_client.responses.create.call_args.kwargs
        assert kwargs["model"] == "grok-4-1-fast-reasoning"
        assert kwargs["include"] == ["reasoning.encrypted_content"]
        assert "reasoning" not in kwargs

    @pytest.mark.asyncio
    async def test_no_reasoning_means_no_continuation(self, host_tools, mock_client):
        grok = GrokProvider(GrokConfig(api_key="xai-test"), host_tools, client=mock_client)

        response = await grok.chat([text_message(Role.USER, "hi")], grok.supported_tools)

        assert response.continuation is None

    @pytest.mark.asyncio
    async def test_reasoning_replayed_before_latest_output(self, host_tools, mock_client):
        grok = GrokProvider(GrokConfig(api_key="xai-test"), host_tools, client=mock_client)
        reasoning = {"type": "reasoning", "id": "rs_1", "summary": [], "encrypted_content": "enc-blob"}
        entries = [
            text_message(Role.USER, "first"),
            text_message(Role.ASSISTANT, "old answer"),
            text_message(Role.USER, "summarize"),
            ToolCallEntry(id="c1", name="summarize_messages", arguments={}),
            ToolResultEntry(id="c1", name="summarize_messages", content="done"),
        ]

        await grok.chat(entries, grok.supported_tools, ToolChoice.NONE, continuation=[reasoning])

        items = mock_client.responses.create.call_args.kwargs["input"]
        assert len(items) == 6
        assert items[3] == reasoning
        assert items[4]["type"] == "function_call"

    @pytest.mark.asyncio
    async def test_reasoning_not_replayed_without_prior_output(self, host_tools, mock_client):
        grok = GrokProvider(GrokConfig(api_key="xai-test"), host_tools, client=mock_client)
        reasoning = {"type": "reasoning", "id": "rs_1", "summary": [], "encrypted_content": "enc-blob"}

        await grok.chat([text_message(Role.USER, "hi")], grok.supported_tools, continuation=[reasoning])

        items = mock_client.responses.create.call_args.kwargs["input"]
        assert reasoning not in items

    def test_capabilities(self, host_tools, mock_client):
        grok = GrokProvider(GrokConfig(api_key="xai-test"), host_tools, client=mock_client)

        assert grok.supports_summarize
        assert not grok.supports_image_generation
        assert grok.is_host_handled("generate_image")
        assert grok.is_backend_native("web_search")
