"""API key loading for inference backends.

Keys are read from ~/.concord/keys.env and .env with this priority:
  1. Environment variables (highest, already set in shell)
  2. ~/.concord/keys.env
  3. .env in current directory
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

CONCORD_HOME = Path.home() / ".concord"
KEYS_FILE = CONCORD_HOME / "keys.env"


def load_keys_env(files: list[Path] | None = None) -> list[str]:
    """Load KEY=VALUE files into os.environ without overwriting.

    Args:
        files: Files to read in priority order. Defaults to
            ~/.concord/keys.env then ./.env.

    Returns:
        Names of the variables that were newly set.
    """
    loaded: list[str] = []
    for env_file in files if files is not None else [KEYS_FILE, Path.cwd() / ".env"]:
        if env_file.is_file():
            loaded.extend(_load_env_file(env_file))
    return loaded


def _load_env_file(path: Path) -> list[str]:
    loaded: list[str] = []
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Could not read %s", path)
        return loaded

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        if key and not os.environ.get(key):
            os.environ[key] = value.strip().strip("'\"")
            loaded.append(key)
            logger.debug("Loaded %s from %s", key, path)
    return loaded


def configured_backend_keys(api_key_envs: dict[str, str]) -> dict[str, bool]:
    """Report which backends have their API key available.

    Args:
        api_key_envs: Mapping of backend key to its api_key_env name.
    """
    return {key: bool(os.environ.get(env)) for key, env in api_key_envs.items()}
