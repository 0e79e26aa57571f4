"""CLI entry point for otter-bot."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from otter_bot.app import OtterBotApp
from otter_bot.config import AppConfig, load_config
from otter_bot.log import setup_logging


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="otter-bot",
        description="Discord chat bot with switchable AI providers",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _add_config_args(subparsers.add_parser("start", help="Start the bot"))
    _add_config_args(subparsers.add_parser("config-check", help="Validate configuration"))
    _add_config_args(subparsers.add_parser("providers", help="Show which AI providers are enabled"))

    args = parser.parse_args()

    if args.command is None:
        # Default to start
        args.command = "start"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "providers":
        _providers(args.config, args.env)
    elif args.command == "start":
        _run(args.config, args.env)


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml and .env.example to .env", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load_or_exit(config_path, env_path)
    print(f"Configuration valid: {config_path}")
    print(f"  Discord token   : {'set' if config.discord.token else 'MISSING'}")
    print(f"  Default provider: {config.ai.default_provider}")
    print(f"  Idle timeout    : {config.ai.conversation_timeout}s")
    print(f"  History limit   : {config.ai.history_limit}")
    print(f"  Time zone       : {config.ai.timezone}")
    print(f"  Serialize turns : {config.ai.serialize_turns}")


def _providers(config_path: str, env_path: str) -> None:
    """Show which backends have credentials and their models."""
    config = _load_or_exit(config_path, env_path)
    providers = config.providers
    rows = [
        ("openai", providers.openai.api_key, providers.openai.model),
        ("grok", providers.grok.api_key, providers.grok.model),
        ("gemini", providers.gemini.api_key, providers.gemini.model),
        ("anthropic", providers.anthropic.api_key, providers.anthropic.model),
    ]
    print("AI Providers")
    print("=" * 50)
    for provider_id, api_key, model in rows:
        marker = "*" if provider_id == config.ai.default_provider else " "
        status = "enabled " if api_key else "disabled"
        print(f" {marker} {provider_id:<10} {status}  {model}")
    image = "gemini image model" if providers.gemini.api_key else "unavailable (no Gemini key)"
    print(f"\n  Local image generation: {image}")
    print()


def _run(config_path: str, env_path: str) -> None:
    """Load config and start the application."""
    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level, json_output=config.log_json)

    async def _async_main() -> None:
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        def _signal_handler() -> None:
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _signal_handler)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: _signal_handler())

        app = OtterBotApp(config)
        await app.start()
        try:
            await stop_event.wait()
        finally:
            await app.stop()

    asyncio.run(_async_main())


if __name__ == "__main__":
    main()
