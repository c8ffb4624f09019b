"""
OpenAI-compatible chat completion client for the budget assistant.

Features:
    - Single completion call with an explicit timeout
    - Typed errors for rate limiting (429), bad payloads and other failures
    - Token usage tracking
    - Works against any OpenAI-compatible endpoint via OPENAI_BASE_URL

There is deliberately no retry loop here: a rate-limited or failing call
should degrade to the local fallback answer immediately.

Author: Smart Budget Team
"""

import time
from dataclasses import dataclass
from typing import Optional

from openai import AsyncOpenAI, APIStatusError, APITimeoutError, APIConnectionError, RateLimitError

from config import LLMSettings
from .observability import logger, timed, log_llm_call, log_llm_error


# =============================================================================
# Errors
# =============================================================================

class LLMError(Exception):
    """Language-model call failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message


class LLMRateLimitError(LLMError):
    """Provider answered HTTP 429."""

    def __init__(self, message: str = "Rate limited by provider"):
        super().__init__(message, status=429)


class LLMResponseError(LLMError):
    """Provider answered, but with an empty or malformed payload."""


class LLMUnavailableError(LLMError):
    """No client is configured (missing API key)."""


@dataclass(frozen=True)
class LLMResult:
    text: str
    tokens: int = 0


# =============================================================================
# Client
# =============================================================================

class LLMClient:
    """
    Wrapper over AsyncOpenAI exposing a single complete() call.

    If no API key is configured the client stays disabled and complete()
    raises LLMUnavailableError, which callers treat like any other failure.
    """

    def __init__(self, settings: Optional[LLMSettings] = None, client=None):
        self.settings = settings or LLMSettings.from_env()
        self.model = self.settings.model
        self.client = client

        self.total_tokens_used = 0
        self.request_count = 0

        if self.client is None and self.settings.api_key:
            kwargs = {"api_key": self.settings.api_key}
            if self.settings.base_url:
                kwargs["base_url"] = self.settings.base_url
            self.client = AsyncOpenAI(**kwargs)
            logger.info("LLM client initialized", model=self.model)
        elif self.client is None:
            logger.warning("OPENAI_API_KEY not configured; chat will use fallback answers")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _track_usage(self, response) -> int:
        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) or 0
        self.total_tokens_used += tokens
        self.request_count += 1
        return tokens

    def get_usage_stats(self) -> dict:
        return {
            "total_tokens": self.total_tokens_used,
            "request_count": self.request_count,
            "avg_tokens_per_request": (
                self.total_tokens_used / self.request_count
                if self.request_count > 0 else 0
            ),
        }

    @timed("llm.complete")
    async def complete(
        self,
        system_prompt: str,
        messages: list[dict],
        temperature: float = 0.7,
        max_tokens: int = 256,
        timeout: Optional[float] = None,
    ) -> LLMResult:
        """
        Run one chat completion.

        Args:
            system_prompt: System message content.
            messages: Prior turns and the current user turn, as role/content dicts.
            temperature: Sampling temperature.
            max_tokens: Completion budget.
            timeout: Per-request timeout in seconds passed to the SDK.

        Returns:
            LLMResult with the non-empty reply text.

        Raises:
            LLMRateLimitError: Provider returned 429.
            LLMResponseError: Payload had no usable text.
            LLMUnavailableError: No client configured.
            LLMError: Any other transport or HTTP failure.
        """
        if not self.client:
            raise LLMUnavailableError("Language model is not configured")

        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout,
            )
        except RateLimitError as e:
            log_llm_error(429, str(e))
            raise LLMRateLimitError(str(e)) from e
        except APIStatusError as e:
            log_llm_error(e.status_code, str(e))
            raise LLMError(str(e), status=e.status_code) from e
        except (APITimeoutError, APIConnectionError) as e:
            log_llm_error(None, str(e))
            raise LLMError(str(e)) from e

        tokens = self._track_usage(response)
        log_llm_call(self.model, tokens, (time.perf_counter() - start) * 1000)

        text = _extract_text(response)
        if not text:
            log_llm_error(None, "empty or malformed completion payload")
            raise LLMResponseError("Empty or malformed completion payload")
        return LLMResult(text=text, tokens=tokens)

    async def check_connection(self) -> bool:
        """Check if the completion endpoint is reachable."""
        if not self.client:
            return False
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning("LLM connection check failed", error=str(e))
            return False


def _extract_text(response) -> str:
    """Pull the first choice's text out of a completion, or '' if absent."""
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return ""
    if not isinstance(content, str):
        return ""
    return content.strip()
