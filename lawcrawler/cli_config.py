"""Configuration loading helpers for CLI entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

CONFIG_DIR = Path.home() / ".config" / "lawcrawler"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def load_config(
    *,
    config_env_file: Path,
    cwd: Path,
    load_env: Callable[[Path], bool],
) -> bool:
    """Load .env configuration with fallback to the user config directory.

    Search order: ``<cwd>/.env``, then *config_env_file*. Returns True when
    a file was loaded.
    """
    local_env = cwd / ".env"
    if local_env.is_file():
        load_env(local_env)
        logging.debug("Loaded configuration from %s", local_env)
        return True

    if config_env_file.is_file():
        load_env(config_env_file)
        logging.debug("Loaded configuration from %s", config_env_file)
        return True

    return False
