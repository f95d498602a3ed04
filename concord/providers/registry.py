"""Backend registry and TOML configuration loader.

Loads inference backend definitions from backends.toml and engine
defaults from defaults.toml, and assembles the configured backend (or
fallback chain) for the analyzers.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from concord.providers.base import InferenceBackend
from concord.providers.fallback import FallbackInferenceBackend
from concord.providers.litellm_provider import LiteLLMInferenceBackend
from concord.schemas.config import ArbitrationConfig, BackendConfig, DimensionWeights

# Default config directory relative to the concord package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def _read_toml(path: Path, what: str) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_backends(config_path: Path | None = None) -> dict[str, BackendConfig]:
    """Load the backend registry from a TOML file.

    Args:
        config_path: Path to backends.toml. Defaults to concord/config/backends.toml.

    Returns:
        Dictionary mapping backend keys to BackendConfig instances, in file order.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML structure is invalid.
    """
    path = config_path or _CONFIG_DIR / "backends.toml"
    raw = _read_toml(path, "Backend registry")

    section = raw.get("backends")
    if not section or not isinstance(section, dict):
        raise ValueError(f"No [backends] section found in {path}")

    return {
        key: BackendConfig(**entry)
        for key, entry in section.items()
        if isinstance(entry, dict)
    }


def load_arbitration_config(config_path: Path | None = None) -> ArbitrationConfig:
    """Load engine defaults from a TOML file.

    Args:
        config_path: Path to defaults.toml. Defaults to concord/config/defaults.toml.

    Returns:
        ArbitrationConfig with values from the [arbitration] table. Keys
        missing from the file keep their model defaults.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    raw = _read_toml(path, "Arbitration config")

    section = dict(raw.get("arbitration", {}))
    weights = DimensionWeights(**section.pop("weights", {}))
    return ArbitrationConfig(weights=weights, **section)


def build_backend(
    registry: dict[str, BackendConfig],
    keys: list[str],
) -> InferenceBackend:
    """Build the inference backend for an ordered list of registry keys.

    A single key yields a plain LiteLLMInferenceBackend; several keys
    yield a FallbackInferenceBackend that tries them in order.

    Raises:
        ValueError: If keys is empty or names an unknown backend.
    """
    if not keys:
        raise ValueError("No inference backends configured")

    unknown = [k for k in keys if k not in registry]
    if unknown:
        available = ", ".join(sorted(registry)) or "none"
        raise ValueError(
            f"Unknown backend(s): {', '.join(unknown)} (available: {available})"
        )

    backends: list[InferenceBackend] = [
        LiteLLMInferenceBackend(registry[k]) for k in keys
    ]
    if len(backends) == 1:
        return backends[0]
    return FallbackInferenceBackend(backends)
