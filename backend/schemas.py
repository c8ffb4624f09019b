"""Pydantic request/response schemas for type safety."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Literal


# =============================================================================
# Chat Schemas
# =============================================================================

class ChatRequest(BaseModel):
    """Request schema for the chat endpoint."""
    message: str = Field(..., min_length=1, max_length=2000, description="User's message")
    conversation_id: Optional[str] = Field(None, description="Existing conversation ID for context")


class ChatMessageOut(BaseModel):
    """Individual stored chat turn."""
    id: Optional[int] = None
    conversation_id: str
    role: Literal["user", "bot"]
    message: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChatResponse(BaseModel):
    """Response schema for the chat endpoint."""
    conversation_id: str
    user_message: ChatMessageOut
    bot_response: ChatMessageOut


class ChatHistoryResponse(BaseModel):
    messages: list[ChatMessageOut]


class ClearHistoryResponse(BaseModel):
    deleted: int


# =============================================================================
# Chatbot Context Schemas
# =============================================================================

class UserProfileOut(BaseModel):
    full_name: str
    email: str
    avatar_url: Optional[str] = None


class FinancialInfoOut(BaseModel):
    total_income: float
    total_expense: float
    remaining_balance: float
    savings_rate: float
    financial_health: int
    monthly_income: float
    expenses_by_category: dict[str, float] = {}


class RecentTransactionOut(BaseModel):
    description: str
    category: str
    amount: float
    type: str
    date: Optional[datetime] = None


class ChatContextResponse(BaseModel):
    """What the assistant knows about the user."""
    user: UserProfileOut
    financial_info: FinancialInfoOut
    recent_transactions: list[RecentTransactionOut]


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    database: str
    llm: str
