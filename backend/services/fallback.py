"""
Module: fallback.py
Description: Local, keyword-driven answers used whenever the language model is skipped or fails.

generate_fallback() is a pure function of (message, summary): no I/O, no
clock, no hidden state. It is the safety net behind every degraded path of
the chat pipeline, so it must never need the network.

Author: Smart Budget Team
"""

from typing import Optional

from .summary_builder import FinancialSummary


DATA_UNAVAILABLE_MESSAGE = (
    "I couldn't access your financial data right now. "
    "Please make sure your account is set up and try again in a moment."
)

GENERIC_ERROR_MESSAGE = (
    "Sorry, I'm having trouble answering right now. Please try again in a little while."
)

# Checked in order; the first intent with a matching keyword wins.
INTENT_KEYWORDS = (
    ("balance", ("balance", "money", "left")),
    ("spending", ("spend", "expense")),
    ("income", ("income", "earn")),
    ("health", ("health", "score")),
    ("savings", ("save", "saving", "goal")),
)

SUGGESTED_SAVINGS_SHARE = 0.20


def format_money(amount: float) -> str:
    """Render an amount as $1,234.56 (negative as -$1,234.56)."""
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"


def detect_intent(message: str) -> Optional[str]:
    """Return the first matching intent name for the message, or None."""
    text = message.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return intent
    return None


def health_rating(score: int) -> str:
    if score >= 80:
        return "excellent"
    elif score >= 60:
        return "good"
    elif score >= 40:
        return "fair"
    return "in need of attention"


def generate_fallback(message: str, summary: Optional[FinancialSummary]) -> str:
    """
    Answer a chat message from the summary alone.

    Args:
        message: The user's message.
        summary: The user's financial summary, or None if unavailable.

    Returns:
        A deterministic natural-language answer.
    """
    if summary is None:
        return DATA_UNAVAILABLE_MESSAGE

    intent = detect_intent(message or "")

    if intent == "balance":
        return _respond_balance(summary)
    elif intent == "spending":
        return _respond_spending(summary)
    elif intent == "income":
        return _respond_income(summary)
    elif intent == "health":
        return _respond_health(summary)
    elif intent == "savings":
        return _respond_savings(summary)
    return _respond_status(summary)


# =============================================================================
# Response Builders
# =============================================================================

def _respond_balance(summary: FinancialSummary) -> str:
    return (
        f"Your current balance is {format_money(summary.current_balance)}, "
        f"with {format_money(summary.total_income)} in total income and "
        f"{format_money(summary.total_expense)} in total expenses."
    )


def _respond_spending(summary: FinancialSummary) -> str:
    top = summary.top_expense_category
    if top is None:
        return (
            "I don't see any recent expenses yet. "
            f"Your total expenses so far are {format_money(summary.total_expense)}."
        )

    name, amount = top
    return (
        f"Your top spending category is {name} at {format_money(amount)}. "
        f"Across your recent transactions you've spent "
        f"{format_money(summary.recent_expense)} in total."
    )


def _respond_income(summary: FinancialSummary) -> str:
    return (
        f"Your total income is {format_money(summary.total_income)} "
        f"and your savings rate is {summary.savings_rate:.1f}%."
    )


def _respond_health(summary: FinancialSummary) -> str:
    score = summary.financial_health_score
    return f"Your financial health score is {score}/100, which is {health_rating(score)}."


def _respond_savings(summary: FinancialSummary) -> str:
    if summary.monthly_income > 0:
        target = summary.monthly_income * SUGGESTED_SAVINGS_SHARE
        return (
            f"Try setting aside {SUGGESTED_SAVINGS_SHARE:.0%} of your monthly income of "
            f"{format_money(summary.monthly_income)}, that's {format_money(target)} "
            f"a month toward your goals."
        )
    return (
        "Add your monthly income so I can suggest a savings target. "
        f"Right now your balance is {format_money(summary.current_balance)}."
    )


def _respond_status(summary: FinancialSummary) -> str:
    greeting = f"Hi {summary.user_name}! " if summary.user_name else "Hi! "
    return (
        f"{greeting}Your current balance is {format_money(summary.current_balance)} "
        f"and your financial health score is {summary.financial_health_score}/100. "
        "Ask me about your spending, income, or savings goals."
    )
