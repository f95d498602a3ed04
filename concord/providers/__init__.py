"""Inference backend adapters."""

from concord.providers.base import ConfiguredBackend, InferenceBackend
from concord.providers.fallback import FallbackInferenceBackend
from concord.providers.heuristic import LexicalInferenceBackend, lexical_overlap_estimate
from concord.providers.litellm_provider import LiteLLMInferenceBackend
from concord.providers.registry import (
    build_backend,
    load_arbitration_config,
    load_backends,
)

__all__ = [
    "ConfiguredBackend",
    "FallbackInferenceBackend",
    "InferenceBackend",
    "LexicalInferenceBackend",
    "LiteLLMInferenceBackend",
    "build_backend",
    "lexical_overlap_estimate",
    "load_arbitration_config",
    "load_backends",
]
