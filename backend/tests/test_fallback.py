"""
Test Module: test_fallback.py
Description: Unit tests for the local keyword-driven answers.

Author: Smart Budget Team
"""

import pytest

from services.fallback import (
    generate_fallback, detect_intent, format_money, DATA_UNAVAILABLE_MESSAGE
)


class TestFormatting:

    def test_format_money(self):
        assert format_money(600) == "$600.00"
        assert format_money(1234.5) == "$1,234.50"
        assert format_money(-20) == "-$20.00"


class TestIntentDetection:
    """Keyword priority order."""

    @pytest.mark.parametrize("message,intent", [
        ("What's my BALANCE?", "balance"),
        ("how much money do I have", "balance"),
        ("what do I have left", "balance"),
        ("Where do I spend the most?", "spending"),
        ("list my expenses", "spending"),
        ("how much did I earn", "income"),
        ("what's my health score", "health"),
        ("help me save", "savings"),
        ("set a goal", "savings"),
        ("How are my savings?", "savings"),
        ("tell me a joke", None),
    ])
    def test_detect_intent(self, message, intent):
        assert detect_intent(message) == intent

    def test_balance_beats_spending(self):
        assert detect_intent("how much money did I spend") == "balance"


class TestGenerateFallback:
    """Tests for the generated sentences."""

    def test_no_summary_returns_unavailable(self):
        assert generate_fallback("what's my balance", None) == DATA_UNAVAILABLE_MESSAGE

    def test_balance_scenario(self, summary_factory):
        summary = summary_factory(total_income=1000, total_expense=400)
        reply = generate_fallback("what's my balance", summary)
        assert "$600.00" in reply

    def test_spending_names_top_category(self, sample_summary):
        reply = generate_fallback("what did I spend on?", sample_summary)
        assert "Groceries" in reply
        assert "$120.00" in reply
        assert "$165.50" in reply

    def test_spending_without_expenses(self, summary_factory):
        summary = summary_factory(expenses_by_category={}, recent_expense=0)
        reply = generate_fallback("my expenses", summary)
        assert "don't see any recent expenses" in reply

    def test_income_includes_savings_rate(self, sample_summary):
        reply = generate_fallback("what's my income", sample_summary)
        assert "$1,000.00" in reply
        assert "60.0%" in reply

    def test_health_score(self, sample_summary):
        reply = generate_fallback("how healthy is my score", sample_summary)
        assert "72/100" in reply
        assert "good" in reply

    def test_savings_uses_monthly_income(self, sample_summary):
        reply = generate_fallback("how can I save more", sample_summary)
        assert "$2,500.00" in reply
        assert "$500.00" in reply

    def test_savings_question_gets_savings_answer(self, sample_summary):
        reply = generate_fallback("How are my savings?", sample_summary)
        assert "$500.00" in reply

    def test_savings_without_monthly_income(self, summary_factory):
        summary = summary_factory(monthly_income=0)
        reply = generate_fallback("I want to save", summary)
        assert "Add your monthly income" in reply

    def test_generic_status(self, sample_summary):
        reply = generate_fallback("tell me a joke", sample_summary)
        assert "Alex Doe" in reply
        assert "$600.00" in reply
        assert "72/100" in reply

    def test_is_idempotent(self, sample_summary):
        first = generate_fallback("where does my money go", sample_summary)
        second = generate_fallback("where does my money go", sample_summary)
        assert first == second
