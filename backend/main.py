"""
Module: main.py
Description: FastAPI application entry point for the Smart Budget Assistant.

This module provides REST API endpoints for:
    - Chatting with the AI budget assistant
    - Reading and clearing chat history
    - Inspecting the financial context the assistant sees
    - Health and metrics

Author: Smart Budget Team

Dependencies:
    - FastAPI for REST API framework
    - SQLAlchemy for database operations
    - OpenAI SDK for the language-model call

Usage:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""

from auth import get_current_user
from config import ChatSettings
from services.observability import logger, metrics
from services import (
    ChatService, ConversationStore, SQLFinanceStore, StoreError,
    SummaryBuilder, LLMClient, FixedWindowRateLimiter, ResponseCache,
    BackgroundReaper
)
from schemas import (
    ChatRequest, ChatResponse, ChatMessageOut, ChatHistoryResponse,
    ClearHistoryResponse, ChatContextResponse, UserProfileOut,
    FinancialInfoOut, RecentTransactionOut, HealthResponse
)
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session as DBSession

from database import get_db, init_db


# =============================================================================
# Application Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.

    On startup:
        - Create database tables
        - Build the shared rate limiter, response cache and LLM client
        - Start the background reaper

    On shutdown:
        - Stop the reaper
    """
    logger.info("Starting Smart Budget Assistant API")
    init_db()

    settings = ChatSettings.from_env()
    app.state.chat_settings = settings
    app.state.rate_limiter = FixedWindowRateLimiter(
        max_calls=settings.max_calls_per_window,
        window_seconds=settings.window_seconds,
    )
    app.state.response_cache = ResponseCache(ttl_seconds=settings.cache_ttl_seconds)
    app.state.llm_client = LLMClient()
    app.state.reaper = BackgroundReaper(
        app.state.response_cache,
        app.state.rate_limiter,
        interval_seconds=settings.reaper_interval_seconds,
    )
    app.state.reaper.start()

    yield

    await app.state.reaper.stop()
    logger.info("Shut down Smart Budget Assistant API")


# =============================================================================
# FastAPI Application Configuration
# =============================================================================

app = FastAPI(
    title="Smart Budget Assistant API",
    description="""
    Personal finance assistant API. Answers questions about a user's balance,
    spending, income and savings, using a language model when available and
    local answers otherwise.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Financial data is temporarily unavailable. Please try again."},
    )


# =============================================================================
# Dependency Injection
# =============================================================================

def get_llm_client(request: Request) -> LLMClient:
    return request.app.state.llm_client


def get_chat_service(
    request: Request,
    db: DBSession = Depends(get_db),
) -> ChatService:
    """
    Dependency: Per-request ChatService over the shared pipeline components.
    """
    state = request.app.state
    return ChatService(
        SQLFinanceStore(db),
        state.llm_client,
        state.rate_limiter,
        state.response_cache,
        settings=state.chat_settings,
    )


# =============================================================================
# System Endpoints
# =============================================================================

@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check endpoint",
)
async def health_check(
    db: DBSession = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> HealthResponse:
    """Check the database and language-model connections."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        db_status = f"error: {str(e)}"

    llm_connected = await llm_client.check_connection()
    llm_status = "connected" if llm_connected else "disconnected"

    return HealthResponse(
        status="healthy" if db_status == "connected" else "degraded",
        database=db_status,
        llm=llm_status,
    )


@app.get(
    "/metrics",
    tags=["System"],
    summary="Get application metrics",
)
async def get_metrics(request: Request):
    """Counters and timings plus live sizes of the in-memory chat state."""
    state = request.app.state
    summary = metrics.get_summary()
    summary["chat_state"] = {
        "cache_entries": len(state.response_cache),
        "rate_limit_entries": len(state.rate_limiter),
    }
    summary["llm_usage"] = state.llm_client.get_usage_stats()
    return summary


# =============================================================================
# Chat Endpoints
# =============================================================================

@app.post(
    "/chat",
    response_model=ChatResponse,
    tags=["Chat"],
    summary="Send a message to the budget assistant",
)
async def send_message(
    body: ChatRequest,
    request: Request,
    db: DBSession = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
    user_id: str = Depends(get_current_user),
) -> ChatResponse:
    """
    Answer the user's message, then save both turns.

    Model calls are rate limited per user; over the limit the assistant
    answers from local data instead of returning 429. Turns are only stored
    for existing users, and only once the reply exists.
    """
    conversations = ConversationStore(db)
    conversation_id = body.conversation_id or conversations.new_conversation_id()

    known_user = SQLFinanceStore(db).get_user(user_id) is not None

    settings: ChatSettings = request.app.state.chat_settings
    history = (
        conversations.recent_turns(user_id, conversation_id, settings.history_turns)
        if known_user else []
    )

    reply = await chat_service.send_message(user_id, body.message, history)

    if known_user:
        user_entry, bot_entry = conversations.save_exchange(
            user_id, conversation_id, body.message, reply
        )
    else:
        user_entry = conversations.new_entry(user_id, conversation_id, "user", body.message)
        bot_entry = conversations.new_entry(user_id, conversation_id, "bot", reply)

    return ChatResponse(
        conversation_id=conversation_id,
        user_message=ChatMessageOut.model_validate(user_entry),
        bot_response=ChatMessageOut.model_validate(bot_entry),
    )


@app.get(
    "/chat/history",
    response_model=ChatHistoryResponse,
    tags=["Chat"],
    summary="Get chat history",
)
async def get_chat_history(
    conversation_id: Optional[str] = None,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> ChatHistoryResponse:
    """All stored turns for the user, oldest first."""
    rows = ConversationStore(db).get_history(user_id, conversation_id)
    return ChatHistoryResponse(messages=[ChatMessageOut.model_validate(r) for r in rows])


@app.delete(
    "/chat/history",
    response_model=ClearHistoryResponse,
    tags=["Chat"],
    summary="Clear chat history",
)
async def clear_chat_history(
    request: Request,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> ClearHistoryResponse:
    """Delete the user's chat turns and forget their cached replies."""
    deleted = ConversationStore(db).clear_history(user_id)
    request.app.state.response_cache.clear_user(user_id)
    logger.info("Chat history cleared", user_id=user_id, deleted=deleted)
    return ClearHistoryResponse(deleted=deleted)


@app.get(
    "/chat/context",
    response_model=ChatContextResponse,
    tags=["Chat"],
    summary="Get the assistant's view of the user's finances",
)
async def get_chat_context(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
) -> ChatContextResponse:
    """Profile, financial totals and recent transactions used by the assistant."""
    store = SQLFinanceStore(db)
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    summary = SummaryBuilder(store).build_for_user(user_id, user).to_dict()

    return ChatContextResponse(
        user=UserProfileOut(
            full_name=user.full_name,
            email=user.email,
            avatar_url=user.avatar_url,
        ),
        financial_info=FinancialInfoOut(
            total_income=summary["total_income"],
            total_expense=summary["total_expense"],
            remaining_balance=summary["current_balance"],
            savings_rate=summary["savings_rate"],
            financial_health=summary["financial_health_score"],
            monthly_income=summary["monthly_income"],
            expenses_by_category=summary["expenses_by_category"],
        ),
        recent_transactions=[
            RecentTransactionOut(**t) for t in summary["recent_transactions"]
        ],
    )
