"""Persistence for chat turns (user messages and assistant replies)."""

import uuid
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from models import ChatHistory
from .store import StoreError, _as_pk


class ConversationStore:
    """Read and write ChatHistory rows for a user."""

    def __init__(self, db: DBSession):
        self.db = db

    @staticmethod
    def new_conversation_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def new_entry(user_id, conversation_id: str, role: str, message: str) -> ChatHistory:
        if role not in ("user", "bot"):
            raise ValueError(f"Unsupported chat role: {role}")
        return ChatHistory(
            user_id=_as_pk(user_id),
            conversation_id=conversation_id,
            role=role,
            message=message,
            context_metadata={},
        )

    def save_exchange(
        self,
        user_id,
        conversation_id: str,
        user_message: str,
        bot_message: str,
    ) -> tuple[ChatHistory, ChatHistory]:
        """Persist a user turn and its reply together, or neither."""
        user_entry = self.new_entry(user_id, conversation_id, "user", user_message)
        bot_entry = self.new_entry(user_id, conversation_id, "bot", bot_message)
        try:
            # Flush the user turn first so it sorts before the reply.
            self.db.add(user_entry)
            self.db.flush()
            self.db.add(bot_entry)
            self.db.commit()
            self.db.refresh(user_entry)
            self.db.refresh(bot_entry)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to save chat exchange: {e}") from e
        return user_entry, bot_entry

    def get_history(self, user_id, conversation_id: Optional[str] = None) -> list[ChatHistory]:
        """All turns for the user (optionally one conversation), oldest first."""
        query = self.db.query(ChatHistory).filter(ChatHistory.user_id == _as_pk(user_id))
        if conversation_id:
            query = query.filter(ChatHistory.conversation_id == conversation_id)
        try:
            return query.order_by(ChatHistory.created_at.asc(), ChatHistory.id.asc()).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load chat history: {e}") from e

    def recent_turns(self, user_id, conversation_id: str, limit: int) -> list[dict]:
        """The last `limit` turns of a conversation as role/content dicts, oldest first."""
        if limit <= 0:
            return []
        try:
            rows = (
                self.db.query(ChatHistory)
                .filter(
                    ChatHistory.user_id == _as_pk(user_id),
                    ChatHistory.conversation_id == conversation_id,
                )
                .order_by(ChatHistory.created_at.desc(), ChatHistory.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load chat history: {e}") from e
        return [{"role": r.role, "content": r.message} for r in reversed(rows)]

    def clear_history(self, user_id) -> int:
        """Delete every turn for the user. Returns the number of rows removed."""
        try:
            deleted = (
                self.db.query(ChatHistory)
                .filter(ChatHistory.user_id == _as_pk(user_id))
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to clear chat history: {e}") from e
        return deleted
