"""
Module: config.py
Description: Environment-driven configuration for the Smart Budget Assistant.

All tunables are read once from the process environment (and a local .env
file if present). The chat pipeline receives a frozen ChatSettings instance
instead of reading os.environ itself, so tests can build their own.

Author: Smart Budget Team
"""

import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# Database & Auth
# =============================================================================

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./smart_budget.db")

JWT_SECRET = os.getenv("JWT_SECRET", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Development bypass (never enable in production)
AUTH_BYPASS = os.getenv("AUTH_BYPASS", "false").lower() == "true"
AUTH_BYPASS_USER_ID = os.getenv("AUTH_BYPASS_USER_ID", "1")


# =============================================================================
# Chat Pipeline
# =============================================================================

DEFAULT_SIMPLE_KEYWORDS = ("balance", "money left", "health score")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def parse_keywords(raw: str) -> Tuple[str, ...]:
    """Split a comma separated keyword list, dropping blanks."""
    return tuple(k.strip().lower() for k in raw.split(",") if k.strip())


@dataclass(frozen=True)
class ChatSettings:
    """
    Tunables for the chat assistant response pipeline.

    Attributes:
        max_calls_per_window: Language-model attempts allowed per user per window.
        window_seconds: Length of the fixed rate-limit window.
        cache_ttl_seconds: How long a cached response stays valid.
        reaper_interval_seconds: Period of the background eviction sweep.
        request_timeout_seconds: Upper bound on any single external call.
        temperature: Sampling temperature passed to the model.
        max_tokens: Completion budget passed to the model.
        history_turns: How many prior conversation turns the model sees.
        history_char_limit: Per-turn truncation applied to that history.
        simple_keywords: Phrases answered locally without any model call.
    """

    max_calls_per_window: int = 3
    window_seconds: float = 60.0
    cache_ttl_seconds: float = 300.0
    reaper_interval_seconds: float = 60.0
    request_timeout_seconds: float = 20.0
    temperature: float = 0.7
    max_tokens: int = 256
    history_turns: int = 2
    history_char_limit: int = 500
    simple_keywords: Tuple[str, ...] = field(default=DEFAULT_SIMPLE_KEYWORDS)

    @classmethod
    def from_env(cls) -> "ChatSettings":
        """Build settings from CHAT_* environment variables."""
        raw_keywords = os.getenv("CHAT_SIMPLE_KEYWORDS")
        keywords = (
            DEFAULT_SIMPLE_KEYWORDS if raw_keywords is None
            else parse_keywords(raw_keywords)
        )

        return cls(
            max_calls_per_window=_env_int("CHAT_RATE_LIMIT_MAX_CALLS", 3),
            window_seconds=_env_float("CHAT_RATE_LIMIT_WINDOW_SECONDS", 60.0),
            cache_ttl_seconds=_env_float("CHAT_CACHE_TTL_SECONDS", 300.0),
            reaper_interval_seconds=_env_float("CHAT_REAPER_INTERVAL_SECONDS", 60.0),
            request_timeout_seconds=_env_float("CHAT_REQUEST_TIMEOUT_SECONDS", 20.0),
            temperature=_env_float("CHAT_TEMPERATURE", 0.7),
            max_tokens=_env_int("CHAT_MAX_TOKENS", 256),
            history_turns=_env_int("CHAT_HISTORY_TURNS", 2),
            history_char_limit=_env_int("CHAT_HISTORY_CHAR_LIMIT", 500),
            simple_keywords=keywords,
        )


# =============================================================================
# Language Model
# =============================================================================

@dataclass(frozen=True)
class LLMSettings:
    """Connection settings for the OpenAI-compatible completion endpoint."""

    api_key: str = ""
    model: str = "gpt-4o-mini"
    base_url: str = ""

    @classmethod
    def from_env(cls) -> "LLMSettings":
        raw_key = os.getenv("OPENAI_API_KEY", "")
        return cls(
            api_key=raw_key.strip(),
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            base_url=os.getenv("OPENAI_BASE_URL", "").strip(),
        )
