"""
Module: store.py
Description: Read-side adapter over the user and transaction tables.

The chat pipeline only needs two lookups: the user record and the user's
most recent transactions. Keeping them behind a small class lets tests swap
in a fake and keeps SQLAlchemy errors from leaking as driver exceptions.

Author: Smart Budget Team
"""

from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from models import User, Transaction


class StoreError(Exception):
    """The user/transaction store could not be reached or queried."""


class SQLFinanceStore:
    """User/transaction store backed by a SQLAlchemy session."""

    def __init__(self, db: DBSession):
        self.db = db

    def get_user(self, user_id) -> Optional[User]:
        """Return the user, or None if no such user exists."""
        try:
            return self.db.query(User).filter(User.id == _as_pk(user_id)).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load user {user_id}: {e}") from e

    def list_recent_transactions(self, user_id, limit: int) -> list[Transaction]:
        """Return up to `limit` transactions for the user, newest first."""
        try:
            return (
                self.db.query(Transaction)
                .filter(Transaction.user_id == _as_pk(user_id))
                .order_by(Transaction.date.desc(), Transaction.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load transactions for user {user_id}: {e}") from e


def _as_pk(user_id):
    # Auth hands us string ids; the tables use integer keys.
    if isinstance(user_id, str) and user_id.isdigit():
        return int(user_id)
    return user_id
