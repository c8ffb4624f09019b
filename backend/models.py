"""
SQLAlchemy ORM models for the Smart Budget Assistant.

Includes:
    - User (profile plus running lifetime income/expense totals)
    - Transaction (income or expense, with an embedded category name)
    - ChatHistory (one row per chat turn, grouped by conversation_id)

Author: Smart Budget Team
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Text, JSON, Index
)
from sqlalchemy.orm import relationship
from database import Base


class User(Base):
    """
    Account holder.

    total_income / total_expense are lifetime running totals maintained by
    the transaction handlers, not recomputed from the transactions table.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    avatar_url = Column(String)

    monthly_income = Column(Float, default=0)
    total_income = Column(Float, default=0)
    total_expense = Column(Float, default=0)

    financial_health = Column(Integer, default=50)  # 0-100

    member_since = Column(DateTime, default=datetime.utcnow)

    transactions = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    chat_messages = relationship("ChatHistory", back_populates="user", cascade="all, delete-orphan")


class Transaction(Base):
    """Single income or expense entry."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    description = Column(String)
    amount = Column(Float, nullable=False)
    type = Column(String, nullable=False)  # 'income'|'expense'
    category_name = Column(String)
    date = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="transactions")

    __table_args__ = (
        Index('ix_transactions_user_id_date', 'user_id', 'date'),
    )


class ChatHistory(Base):
    """Individual chat turns."""
    __tablename__ = "chat_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    conversation_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)  # 'user'|'bot'
    message = Column(Text, nullable=False)
    context_metadata = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="chat_messages")

    __table_args__ = (
        Index('ix_chat_history_user_conversation_created', 'user_id', 'conversation_id', 'created_at'),
    )
