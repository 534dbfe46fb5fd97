"""ReviewStore backed by the flashcard_reviews table."""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DBSession, sessionmaker

from server.db.models import FlashcardReview
from study.models import ReviewState
from study.storage import PersistenceFailure

logger = logging.getLogger("studydeck.storage")

_DIALECT_INSERTS = {
    'sqlite': sqlite_insert,
    'postgresql': pg_insert,
}


def _find_row(db: DBSession, user_id: str, card_id: str) -> Optional[FlashcardReview]:
    return db.execute(
        select(FlashcardReview).where(
            FlashcardReview.user_id == user_id,
            FlashcardReview.card_id == card_id,
        )
    ).scalar_one_or_none()


def _select_then_write(db: DBSession, user_id: str, card_id: str, values: Dict) -> None:
    """Portable upsert for dialects without ON CONFLICT; retries once as an update."""
    row = _find_row(db, user_id, card_id)
    if row is None:
        db.add(FlashcardReview(user_id=user_id, card_id=card_id, **values))
        try:
            db.commit()
            return
        except IntegrityError:
            db.rollback()
            row = _find_row(db, user_id, card_id)
            if row is None:
                raise
    for name, value in values.items():
        setattr(row, name, value)
    db.commit()


def _to_state(row: FlashcardReview) -> ReviewState:
    return ReviewState(
        interval_days=row.interval_days,
        ease_factor=row.ease_factor,
        repetitions=row.repetitions,
        next_review_at=row.next_review_at,
        last_reviewed_at=row.last_reviewed_at,
    )


class SqlReviewStore:
    """
    Upserts keyed by (user_id, card_id); conflicts update the row in place.

    Each call runs in its own session so a failed write never poisons the next.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_review(self, user_id: str, card_id: str) -> Optional[ReviewState]:
        try:
            with self.session_factory() as db:
                row = _find_row(db, user_id, card_id)
                return _to_state(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Cannot read review {user_id}/{card_id}: {e}") from e

    def upsert_review(self, user_id: str, card_id: str, state: ReviewState) -> None:
        values = {
            'interval_days': state.interval_days,
            'ease_factor': state.ease_factor,
            'repetitions': state.repetitions,
            'next_review_at': state.next_review_at or datetime.now(),
            'last_reviewed_at': state.last_reviewed_at,
        }
        try:
            with self.session_factory() as db:
                dialect_insert = _DIALECT_INSERTS.get(db.get_bind().dialect.name)
                if dialect_insert is None:
                    _select_then_write(db, user_id, card_id, values)
                else:
                    # single statement: a concurrent first grading updates instead of colliding
                    stmt = dialect_insert(FlashcardReview).values(
                        user_id=user_id, card_id=card_id, **values
                    )
                    db.execute(stmt.on_conflict_do_update(
                        index_elements=['user_id', 'card_id'], set_=values,
                    ))
                    db.commit()
        except SQLAlchemyError as e:
            logger.exception("Review upsert failed for %s/%s", user_id, card_id)
            raise PersistenceFailure(f"Cannot save review {user_id}/{card_id}: {e}") from e

    def due_card_ids(self, user_id: str, as_of: Optional[datetime] = None) -> List[str]:
        if as_of is None:
            as_of = datetime.now()
        try:
            with self.session_factory() as db:
                rows = db.execute(
                    select(FlashcardReview.card_id)
                    .where(
                        FlashcardReview.user_id == user_id,
                        FlashcardReview.next_review_at <= as_of,
                    )
                    .order_by(FlashcardReview.next_review_at, FlashcardReview.card_id)
                ).scalars().all()
                return list(rows)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Cannot list due reviews for {user_id}: {e}") from e
