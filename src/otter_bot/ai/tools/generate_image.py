"""Image generation tool."""

from __future__ import annotations

from typing import Any

from otter_bot.ai.tools.base import Tool
from otter_bot.ai.types import ToolContext


class GenerateImageTool(Tool):
    """Generate (or refine) an image and post it to the channel."""

    @property
    def name(self) -> str:
        return "generate_image"

    @property
    def description(self) -> str:
        return (
            "Generate an image from a prompt. If refine_previous is true, improve the most "
            "recently generated image for this channel using the refinement text."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "A detailed description of the image to generate.",
                },
                "refine_previous": {
                    "type": "boolean",
                    "description": "If true, refine the most recently generated image for this channel.",
                },
            },
            "required": ["prompt"],
            "additionalProperties": False,
        }

    async def execute(self, ctx: ToolContext, arguments: dict[str, Any]) -> str:
        prompt = str(arguments.get("prompt") or "")
        refine_previous = bool(arguments.get("refine_previous", False))

        # the local generator covers providers without a server-side image endpoint
        generator = ctx.provider.local_image_generator
        if generator is not None:
            return await generator.generate(ctx.channel, prompt, refine_previous=refine_previous)

        if ctx.provider.supports_image_generation:
            return await ctx.provider.generate_image(ctx.channel, prompt)

        return "This provider does not support image generation."
