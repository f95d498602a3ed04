"""Universal LiteLLM adapter implementing the InferenceBackend interface.

Routes NLI classification requests to any LLM provider via LiteLLM's
unified API. Handles prompt rendering, JSON parsing, score clamping,
timeouts, and retry with exponential backoff. Every failure surfaces as
InferenceUnavailable.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from concord.errors import InferenceUnavailable
from concord.prompts import render_prompt
from concord.providers.base import ConfiguredBackend
from concord.schemas.analysis import InferenceResult
from concord.schemas.config import BackendConfig

logger = logging.getLogger(__name__)

# Regex for a JSON object inside a fenced markdown block
_JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n```", re.DOTALL)

# Regex for the first bare {...} object in free text
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

_SCORE_KEYS = ("entailment", "contradiction", "neutral", "confidence")

_BASE_BACKOFF = 1.0  # seconds


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMInferenceBackend(ConfiguredBackend):
    """NLI backend powered by LiteLLM.

    Routes calls to any provider (Anthropic, OpenAI, Google, xAI, local
    Ollama, etc.) through litellm.acompletion(). This is the only place
    provider SDKs are reached.
    """

    def __init__(self, config: BackendConfig) -> None:
        super().__init__(config)
        self._api_key = os.environ.get(config.api_key_env, "")

    async def classify(
        self,
        text_a: str,
        text_b: str,
        *,
        timeout: float = 20.0,
    ) -> InferenceResult:
        """Classify a statement pair via LiteLLM.

        Raises:
            InferenceUnavailable: On timeout, provider error, or when the
                response is empty or not a valid score object.
        """
        system = render_prompt(
            "classify",
            text_a=text_a[: self._config.max_chars],
            text_b=text_b[: self._config.max_chars],
        )
        messages = [
            {"role": "system", "content": system},
            {
                "role": "user",
                "content": "Classify the two statements as described in your instructions.",
            },
        ]

        kwargs = self._build_completion_kwargs(messages, timeout)
        response = await self._call_with_retry(kwargs)

        content = self._extract_content(response)
        if not content.strip():
            raise InferenceUnavailable(self.backend_id, "empty response")

        scores = parse_scores(content)
        if scores is None:
            logger.debug("Unparseable NLI response from %s: %.200s", self.backend_id, content)
            raise InferenceUnavailable(self.backend_id, "malformed response")

        return InferenceResult(**scores, backend=self.backend_id)

    def _build_completion_kwargs(
        self,
        messages: list[dict[str, str]],
        timeout: float,
    ) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            "timeout": float(timeout),
            "temperature": 0.0,
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key

        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        if self._config.supports_structured:
            kwargs["response_format"] = {"type": "json_object"}

        return kwargs

    async def _call_with_retry(self, kwargs: dict) -> litellm.ModelResponse:
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) fail immediately.

        Raises:
            InferenceUnavailable: When the call cannot be completed.
        """
        attempts = self._config.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError as e:
                last_error = e
            except litellm.AuthenticationError:
                raise InferenceUnavailable(
                    self.backend_id,
                    f"authentication failed (check {self._config.api_key_env})",
                ) from None
            except litellm.BadRequestError as e:
                raise InferenceUnavailable(self.backend_id, f"bad request: {e}") from e
            except (
                litellm.Timeout,
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e
            except Exception as e:
                # NotFound, PermissionDenied, UnprocessableEntity, APIError and
                # anything unexpected from the SDK: not worth retrying
                raise InferenceUnavailable(
                    self.backend_id, f"backend error: {_short_error_reason(e)}"
                ) from e

            if attempt < attempts - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    attempts - 1,
                    self._config.display_name,
                    _short_error_reason(last_error),
                    backoff,
                )
                await asyncio.sleep(backoff)

        raise InferenceUnavailable(
            self.backend_id,
            f"failed after {attempts} attempt(s): {_short_error_reason(last_error)}",
        ) from last_error

    def _extract_content(self, response: litellm.ModelResponse) -> str:
        """Extract text content from a LiteLLM response."""
        if not response.choices:
            return ""
        message = response.choices[0].message
        return message.content or "" if message else ""


def parse_scores(content: str) -> dict[str, float] | None:
    """Parse an NLI score object from model output.

    Accepts a bare JSON object, a fenced ```json block, or the first
    {...} span in free text. All four score keys must be present and
    numeric; values are clamped to [0, 1].

    Returns:
        Mapping of score name to value, or None if the content is not a
        complete score object.
    """
    candidates = [content.strip()]
    block = _JSON_BLOCK_RE.search(content)
    if block:
        candidates.append(block.group(1))
    bare = _JSON_OBJECT_RE.search(content)
    if bare:
        candidates.append(bare.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        scores: dict[str, float] = {}
        for key in _SCORE_KEYS:
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                break
            scores[key] = min(1.0, max(0.0, float(value)))
        else:
            return scores
    return None
