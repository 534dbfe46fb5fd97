"""Database layer: SQLAlchemy models, session, and the SQL review store."""

from server.db.models import Base, FlashcardReview
from server.db.review_store import SqlReviewStore
from server.db.session import get_db, get_session_factory, init_db, reset_engine

__all__ = [
    "Base",
    "FlashcardReview",
    "SqlReviewStore",
    "get_db",
    "get_session_factory",
    "init_db",
    "reset_engine",
]
