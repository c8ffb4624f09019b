"""
Module: chat_service.py
Description: Response pipeline for the AI budget assistant.

Every chat message walks the same sequence of exits:
    1. Build the financial summary       -> unknown user: data-unavailable text
    2. Simple-question check             -> answered locally, no quota used
    3. Per-user rate limit               -> over quota: local answer
    4. Response cache                    -> fresh hit: cached text
    5. Language-model call               -> success: cache and return
                                            any failure: local answer

send_message() always returns text. The only exception it lets through is
StoreError, raised when the user/transaction store itself is down.

Author: Smart Budget Team

Usage:
    chat_service = ChatService(store, llm_client, rate_limiter, response_cache)
    reply = await chat_service.send_message(user_id, "How much did I spend?", history)
"""

import asyncio
import re
from typing import Iterable, Optional

from config import ChatSettings
from .ai_service import LLMClient, LLMError
from .fallback import generate_fallback, format_money, DATA_UNAVAILABLE_MESSAGE, GENERIC_ERROR_MESSAGE
from .observability import (
    logger, log_chat_request, log_simple_bypass, log_rate_limited,
    log_cache_hit, log_fallback
)
from .rate_limiter import FixedWindowRateLimiter
from .response_cache import ResponseCache, normalize_message
from .store import StoreError
from .summary_builder import FinancialSummary, SummaryBuilder


class SimpleQuestionPolicy:
    """
    Decides which messages are cheap enough to answer locally.

    A message is simple when any configured phrase appears in it as whole
    words. An empty phrase list disables the bypass.
    """

    def __init__(self, keywords: Iterable[str] = ()):
        self.keywords = tuple(k.strip().lower() for k in keywords if k and k.strip())
        self._patterns = [
            re.compile(r"(?<!\w)" + re.escape(k) + r"(?!\w)") for k in self.keywords
        ]

    def is_simple(self, message: str) -> bool:
        text = normalize_message(message)
        return any(p.search(text) for p in self._patterns)


class ChatService:
    """
    Decision pipeline in front of the language model.

    The rate limiter, response cache and LLM client are shared, process-wide
    components; the store is request scoped.
    """

    SYSTEM_PROMPT = """You are a friendly personal finance assistant inside a budgeting app.
Answer using only the user's financial facts below. Keep replies under 120 words,
use plain sentences (no markdown), quote dollar amounts from the facts, and end
with at most one concrete suggestion. If the question is not about the user's
money, say you can only help with their finances."""

    MAX_PROMPT_CATEGORIES = 5

    def __init__(
        self,
        store,
        llm_client: LLMClient,
        rate_limiter: FixedWindowRateLimiter,
        response_cache: ResponseCache,
        settings: Optional[ChatSettings] = None,
    ):
        self.settings = settings or ChatSettings()
        self.summary_builder = SummaryBuilder(store)
        self.llm_client = llm_client
        self.rate_limiter = rate_limiter
        self.response_cache = response_cache
        self.simple_policy = SimpleQuestionPolicy(self.settings.simple_keywords)

    async def send_message(
        self,
        user_id,
        message: str,
        conversation_history: Optional[list] = None,
    ) -> str:
        """
        Produce the assistant's reply to one message.

        Args:
            user_id: The authenticated user.
            message: The user's message.
            conversation_history: Prior turns, oldest first, as dicts with
                'role' ('user'|'bot'|'assistant') and 'content' or 'message'.

        Returns:
            The reply text.

        Raises:
            StoreError: If the user/transaction store is unavailable.
        """
        log_chat_request(str(user_id), len(message or ""))

        summary = await self._build_summary(user_id)
        if summary is None:
            log_fallback(str(user_id), "user_not_found")
            return DATA_UNAVAILABLE_MESSAGE

        if self.simple_policy.is_simple(message):
            log_simple_bypass(str(user_id))
            return self._safe_fallback(message, summary)

        decision = self.rate_limiter.check_and_consume(user_id)
        if not decision.allowed:
            log_rate_limited(str(user_id), decision.retry_after_seconds)
            log_fallback(str(user_id), "rate_limited")
            return self._safe_fallback(message, summary)

        cached = self.response_cache.get(user_id, message)
        if cached is not None:
            log_cache_hit(str(user_id))
            return cached

        try:
            result = await asyncio.wait_for(
                self.llm_client.complete(
                    self.build_system_prompt(summary),
                    self.build_messages(message, conversation_history),
                    temperature=self.settings.temperature,
                    max_tokens=self.settings.max_tokens,
                    timeout=self.settings.request_timeout_seconds,
                ),
                timeout=self.settings.request_timeout_seconds,
            )
        except LLMError as e:
            reason = "llm_rate_limited" if e.status == 429 else "llm_error"
            log_fallback(str(user_id), reason)
            return self._safe_fallback(message, summary)
        except asyncio.TimeoutError:
            log_fallback(str(user_id), "llm_timeout")
            return self._safe_fallback(message, summary)
        except Exception:
            logger.exception("Unexpected language model failure", user_id=user_id)
            log_fallback(str(user_id), "llm_unexpected")
            return self._safe_fallback(message, summary)

        self.response_cache.put(user_id, message, result.text)
        return result.text

    # ==========================================================================
    # Pipeline Steps
    # ==========================================================================

    async def _build_summary(self, user_id) -> Optional[FinancialSummary]:
        """
        Build the summary off the event loop, bounded by the request timeout.

        A timed-out worker thread cannot be cancelled and may still be reading
        through the store afterwards. The resulting StoreError ends the request,
        so the caller must not issue further queries on the same session.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.summary_builder.build, user_id),
                timeout=self.settings.request_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise StoreError(f"Timed out loading financial data for user {user_id}") from e

    def _safe_fallback(self, message: str, summary: Optional[FinancialSummary]) -> str:
        """Local answer, or the generic apology if even that cannot be produced."""
        if summary is None:
            return GENERIC_ERROR_MESSAGE
        try:
            return generate_fallback(message, summary)
        except Exception:
            logger.exception("Fallback generation failed")
            return GENERIC_ERROR_MESSAGE

    def build_system_prompt(self, summary: FinancialSummary) -> str:
        """System prompt with a bounded set of summary facts."""
        lines = [
            self.SYSTEM_PROMPT,
            "",
            "User's financial facts:",
            f"Name: {summary.user_name or 'unknown'}",
            f"Current balance: {format_money(summary.current_balance)}",
            f"Total income: {format_money(summary.total_income)}",
            f"Total expenses: {format_money(summary.total_expense)}",
            f"Savings rate: {summary.savings_rate:.1f}%",
            f"Financial health score: {summary.financial_health_score}/100",
            f"Monthly income: {format_money(summary.monthly_income)}",
        ]

        top_categories = sorted(
            summary.expenses_by_category.items(), key=lambda item: item[1], reverse=True
        )[:self.MAX_PROMPT_CATEGORIES]
        if top_categories:
            lines.append(
                "Recent spending by category: "
                + ", ".join(f"{name} {format_money(amount)}" for name, amount in top_categories)
            )

        if summary.recent_transactions:
            lines.append("Most recent transactions:")
            for t in summary.recent_transactions:
                day = t.date.strftime("%Y-%m-%d") if t.date else "unknown date"
                lines.append(
                    f"- {day}: {t.description or t.category} ({t.category}), "
                    f"{t.type} {format_money(t.amount)}"
                )

        return "\n".join(lines)

    def build_messages(self, message: str, conversation_history: Optional[list]) -> list[dict]:
        """Last few history turns (truncated) followed by the current message."""
        messages = []
        turns = self.settings.history_turns
        limit = self.settings.history_char_limit

        recent = list(conversation_history or [])[-turns:] if turns > 0 else []
        for turn in recent:
            role = turn.get("role")
            if role == "bot":
                role = "assistant"
            if role not in ("user", "assistant"):
                continue
            content = turn.get("content") or turn.get("message") or ""
            if not content:
                continue
            messages.append({"role": role, "content": content[:limit]})

        messages.append({"role": "user", "content": message})
        return messages
