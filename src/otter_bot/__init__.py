"""otter-bot: a Discord chat bot with switchable AI providers."""

__version__ = "0.1.0"
