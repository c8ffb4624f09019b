"""Backend services for the budget assistant chat pipeline."""

from .ai_service import (
    LLMClient, LLMResult, LLMError, LLMRateLimitError,
    LLMResponseError, LLMUnavailableError
)
from .chat_service import ChatService, SimpleQuestionPolicy
from .conversation_store import ConversationStore
from .fallback import generate_fallback, DATA_UNAVAILABLE_MESSAGE, GENERIC_ERROR_MESSAGE
from .rate_limiter import FixedWindowRateLimiter, RateLimitDecision
from .reaper import BackgroundReaper
from .response_cache import ResponseCache, message_hash
from .store import SQLFinanceStore, StoreError
from .summary_builder import FinancialSummary, SummaryBuilder

__all__ = [
    "LLMClient",
    "LLMResult",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMUnavailableError",
    "ChatService",
    "SimpleQuestionPolicy",
    "ConversationStore",
    "generate_fallback",
    "DATA_UNAVAILABLE_MESSAGE",
    "GENERIC_ERROR_MESSAGE",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "BackgroundReaper",
    "ResponseCache",
    "message_hash",
    "SQLFinanceStore",
    "StoreError",
    "FinancialSummary",
    "SummaryBuilder",
]
