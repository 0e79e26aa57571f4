#!/usr/bin/env python3
"""Set up a virtual environment for otter-bot.

Usage:
    python install.py          # Runtime install
    python install.py --test   # Also install pytest and pytest-asyncio
"""

import os
import platform
import shutil
import subprocess
import sys

MIN_PYTHON = (3, 11)
CREDENTIALS = [
    "DISCORD_BOT_TOKEN",
    "OPENAI_API_KEY",
    "XAI_API_KEY",
    "GOOGLE_API_KEY",
    "ANTHROPIC_API_KEY",
]


def _venv_paths(project_dir: str) -> tuple[str, str]:
    venv_dir = os.path.join(project_dir, ".venv")
    bin_dir = "Scripts" if platform.system() == "Windows" else "bin"
    return venv_dir, os.path.join(venv_dir, bin_dir, "pip")


def _copy_if_missing(project_dir: str, src: str, dst: str) -> None:
    src_path = os.path.join(project_dir, src)
    dst_path = os.path.join(project_dir, dst)
    if os.path.exists(dst_path):
        print(f"{dst} already exists, skipping.")
    elif os.path.exists(src_path):
        shutil.copy(src_path, dst_path)
        print(f"Created {dst} from {src}")


def main() -> None:
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"Error: Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required. "
            f"You have {sys.version_info.major}.{sys.version_info.minor}."
        )

    project_dir = os.path.dirname(os.path.abspath(__file__))
    venv_dir, pip = _venv_paths(project_dir)

    if not os.path.isdir(venv_dir):
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])

    subprocess.check_call([pip, "install", "--upgrade", "pip"])
    target = ".[test]" if "--test" in sys.argv else "."
    print(f"Installing otter-bot ({target})...")
    subprocess.check_call([pip, "install", "-e", target], cwd=project_dir)

    _copy_if_missing(project_dir, "config.example.yaml", "config.yaml")
    _copy_if_missing(project_dir, ".env.example", ".env")

    activate_cmd = r".\.venv\Scripts\activate" if platform.system() == "Windows" else "source .venv/bin/activate"
    print()
    print("otter-bot installed. Next steps:")
    print("  1. Edit .env and set the credentials you have:")
    for name in CREDENTIALS:
        print(f"       {name}=...")
    print(f"  2. Activate the environment: {activate_cmd}")
    print("  3. Check the setup:   otter-bot config-check && otter-bot providers")
    print("  4. Start the bot:     otter-bot start")


if __name__ == "__main__":
    main()
