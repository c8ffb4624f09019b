"""
Pytest configuration and shared fixtures for Smart Budget Assistant tests.

This file is automatically loaded by pytest and provides:
    - An in-memory SQLite session with the real tables
    - Fake store, LLM client and clock for pipeline tests
    - Sample summary builders

Author: Smart Budget Team
"""

import os
import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

# Configure before any application module reads the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("OPENAI_API_KEY", "")

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import ChatSettings
from database import init_db
from services.ai_service import LLMResult
from services.observability import metrics
from services.summary_builder import FinancialSummary, TransactionView


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def db_session():
    """Fresh in-memory database with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = Session()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


# =============================================================================
# Pipeline Fakes
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """In-memory stand-in for SQLFinanceStore."""

    def __init__(self):
        self.users = {}
        self.transactions = {}
        self.error = None

    def add_user(self, user_id, **fields):
        defaults = dict(
            full_name="Alex Doe",
            email="alex@example.com",
            avatar_url=None,
            monthly_income=0,
            total_income=0,
            total_expense=0,
            financial_health=50,
        )
        defaults.update(fields)
        self.users[str(user_id)] = SimpleNamespace(id=user_id, **defaults)
        self.transactions.setdefault(str(user_id), [])
        return self.users[str(user_id)]

    def add_transaction(self, user_id, amount, type, category_name=None,
                        description="", days_ago=0):
        txn = SimpleNamespace(
            description=description,
            amount=amount,
            type=type,
            category_name=category_name,
            date=datetime(2026, 10, 1) - timedelta(days=days_ago),
        )
        self.transactions.setdefault(str(user_id), []).append(txn)
        return txn

    def get_user(self, user_id):
        if self.error:
            raise self.error
        return self.users.get(str(user_id))

    def list_recent_transactions(self, user_id, limit):
        if self.error:
            raise self.error
        txns = sorted(
            self.transactions.get(str(user_id), []),
            key=lambda t: t.date,
            reverse=True,
        )
        return txns[:limit]


class FakeLLMClient:
    """
    Records every complete() call.

    Set `reply` for a fixed answer, or `error` to raise on every call.
    """

    def __init__(self, reply: str = "Here's what I see in your budget."):
        self.reply = reply
        self.error = None
        self.calls = []

    async def complete(self, system_prompt, messages, temperature=0.7,
                       max_tokens=256, timeout=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.error is not None:
            raise self.error
        return LLMResult(text=self.reply, tokens=42)

    async def check_connection(self) -> bool:
        return False

    def get_usage_stats(self) -> dict:
        return {"total_tokens": 0, "request_count": len(self.calls), "avg_tokens_per_request": 0}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_store():
    store = FakeStore()
    store.add_user("1", full_name="Alex Doe", total_income=1000, total_expense=400,
                   monthly_income=2500, financial_health=72)
    store.add_transaction("1", 120.0, "expense", "Groceries", "Weekly shop", days_ago=1)
    store.add_transaction("1", 45.5, "expense", "Dining", "Pizza night", days_ago=2)
    store.add_transaction("1", 1000.0, "income", "Salary", "Paycheck", days_ago=3)
    return store


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def chat_settings():
    return ChatSettings(simple_keywords=())


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield


# =============================================================================
# Summary Fixtures
# =============================================================================

def make_summary(**overrides) -> FinancialSummary:
    """Build a FinancialSummary with sensible defaults."""
    total_income = overrides.pop("total_income", 1000.0)
    total_expense = overrides.pop("total_expense", 400.0)
    fields = dict(
        user_name="Alex Doe",
        total_income=total_income,
        total_expense=total_expense,
        current_balance=total_income - total_expense,
        savings_rate=60.0,
        financial_health_score=72,
        monthly_income=2500.0,
        expenses_by_category={"Groceries": 120.0, "Dining": 45.5},
        recent_transactions=(
            TransactionView("Weekly shop", "Groceries", 120.0, "expense", datetime(2026, 9, 30)),
        ),
        transaction_count=3,
        recent_income=1000.0,
        recent_expense=165.5,
    )
    fields.update(overrides)
    return FinancialSummary(**fields)


@pytest.fixture
def sample_summary():
    return make_summary()


@pytest.fixture
def summary_factory():
    return make_summary
