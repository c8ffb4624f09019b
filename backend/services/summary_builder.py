"""
Module: summary_builder.py
Description: Builds the per-request financial summary the chat assistant reasons over.

Two aggregation scopes live side by side in the summary:
    - Lifetime totals (total_income, total_expense, current_balance,
      savings_rate, health score) come from the user's running totals.
    - Recent-window analytics (recent_income, recent_expense,
      expenses_by_category, transaction_count) come from the last
      RECENT_WINDOW transactions only.
They answer different questions and are never mixed.

Author: Smart Budget Team
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional

from .observability import logger, timed


RECENT_WINDOW = 30
RECENT_PREVIEW = 5
DEFAULT_CATEGORY = "Uncategorized"


@dataclass(frozen=True)
class TransactionView:
    """Simplified transaction shown to the assistant."""
    description: str
    category: str
    amount: float
    type: str
    date: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "category": self.category,
            "amount": self.amount,
            "type": self.type,
            "date": self.date.isoformat() if self.date else None,
        }


@dataclass(frozen=True)
class FinancialSummary:
    """Derived snapshot of a user's finances, rebuilt on every chat request."""
    user_name: str
    total_income: float
    total_expense: float
    current_balance: float
    savings_rate: float
    financial_health_score: int
    monthly_income: float
    expenses_by_category: dict = field(default_factory=dict)
    recent_transactions: tuple = ()
    transaction_count: int = 0
    recent_income: float = 0.0
    recent_expense: float = 0.0

    @property
    def top_expense_category(self) -> Optional[tuple]:
        """(name, amount) of the largest expense category, or None."""
        if not self.expenses_by_category:
            return None
        return max(self.expenses_by_category.items(), key=lambda item: item[1])

    def to_dict(self) -> dict:
        data = asdict(self)
        data["recent_transactions"] = [t.to_dict() for t in self.recent_transactions]
        return data


def round2(value: float) -> float:
    return round(float(value), 2)


def calculate_savings_rate(total_income: float, total_expense: float) -> float:
    """Percentage of income kept; 0 when there is no income."""
    if total_income > 0:
        return round2((total_income - total_expense) / total_income * 100)
    return 0.0


def calculate_health_score(total_income: float, total_expense: float) -> int:
    """
    Derive a 0-100 health score from lifetime totals.

    Half the weight rewards the savings rate (20%+ scores full marks), the
    other half rewards keeping expenses under 80% of income.
    """
    if total_income <= 0:
        return 0 if total_expense > 0 else 50

    savings_rate = (total_income - total_expense) / total_income
    savings_score = min(100.0, max(0.0, savings_rate / 0.20 * 100))

    expense_ratio = total_expense / total_income
    expense_score = min(100.0, max(0.0, (1 - expense_ratio) * 100 + 20))

    return int(round(savings_score * 0.5 + expense_score * 0.5))


def clamp_score(value) -> int:
    return int(min(100, max(0, round(value))))


class SummaryBuilder:
    """
    Builds FinancialSummary objects from the user/transaction store.

    The store must provide get_user(user_id) and
    list_recent_transactions(user_id, limit) (see services.store).
    """

    def __init__(self, store):
        self.store = store

    def build(self, user_id) -> Optional[FinancialSummary]:
        """
        Build a summary for the user.

        Returns:
            The summary, or None when the user does not exist.

        Raises:
            StoreError: If the store itself is unavailable.
        """
        user = self.store.get_user(user_id)
        if user is None:
            logger.info("Summary requested for unknown user", user_id=user_id)
            return None
        return self.build_for_user(user_id, user)

    @timed("summary.build")
    def build_for_user(self, user_id, user) -> FinancialSummary:
        """Build a summary for a user row already loaded from the store."""
        transactions = self.store.list_recent_transactions(user_id, RECENT_WINDOW)

        total_income = round2(user.total_income or 0)
        total_expense = round2(user.total_expense or 0)

        recent_income = 0.0
        recent_expense = 0.0
        by_category: dict[str, float] = {}
        for t in transactions:
            amount = float(t.amount or 0)
            if t.type == "income":
                recent_income += amount
            elif t.type == "expense":
                recent_expense += amount
                name = t.category_name or DEFAULT_CATEGORY
                by_category[name] = by_category.get(name, 0.0) + amount

        stored_health = getattr(user, "financial_health", None)
        if stored_health is None:
            health = calculate_health_score(total_income, total_expense)
        else:
            health = clamp_score(stored_health)

        recent = tuple(
            TransactionView(
                description=t.description or "",
                category=t.category_name or DEFAULT_CATEGORY,
                amount=round2(t.amount or 0),
                type=t.type,
                date=t.date,
            )
            for t in transactions[:RECENT_PREVIEW]
        )

        return FinancialSummary(
            user_name=user.full_name or "",
            total_income=total_income,
            total_expense=total_expense,
            current_balance=total_income - total_expense,
            savings_rate=calculate_savings_rate(total_income, total_expense),
            financial_health_score=health,
            monthly_income=round2(user.monthly_income or 0),
            expenses_by_category={k: round2(v) for k, v in by_category.items()},
            recent_transactions=recent,
            transaction_count=len(transactions),
            recent_income=round2(recent_income),
            recent_expense=round2(recent_expense),
        )
