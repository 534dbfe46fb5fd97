"""Review-state storage: the store protocol and a JSONL-backed implementation."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from study.models import Card, ReviewState

logger = logging.getLogger("studydeck.storage")


class PersistenceFailure(RuntimeError):
    """A review store could not read or write a schedule."""


class ReviewStore(Protocol):
    """Key-value store of ReviewState keyed by (user_id, card_id)."""

    def get_review(self, user_id: str, card_id: str) -> Optional[ReviewState]:
        ...

    def upsert_review(self, user_id: str, card_id: str, state: ReviewState) -> None:
        """Full-state write; last write wins."""
        ...

    def due_card_ids(self, user_id: str, as_of: Optional[datetime] = None) -> List[str]:
        ...


class JsonlReviewStore:
    """
    JSONL-backed review storage.

    Loads entire file into memory on init (fine for <10k records).
    Writes rewrite the entire file on mutation.
    """

    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._reviews: Dict[Tuple[str, str], ReviewState] = {}
        self._load()

    def _load(self) -> None:
        if not self.db_path.exists():
            return
        try:
            with open(self.db_path, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    data = json.loads(line)
                    key = (data['user_id'], data['card_id'])
                    self._reviews[key] = ReviewState.from_dict(data)
        except (OSError, ValueError, KeyError) as e:
            raise PersistenceFailure(f"Cannot load review store {self.db_path}: {e}") from e

    def _save(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.db_path, 'w', encoding='utf-8') as f:
                for (user_id, card_id), state in self._reviews.items():
                    record = {'user_id': user_id, 'card_id': card_id, **state.to_dict()}
                    f.write(json.dumps(record, ensure_ascii=False) + '\n')
        except OSError as e:
            raise PersistenceFailure(f"Cannot write review store {self.db_path}: {e}") from e

    def get_review(self, user_id: str, card_id: str) -> Optional[ReviewState]:
        return self._reviews.get((user_id, card_id))

    def upsert_review(self, user_id: str, card_id: str, state: ReviewState) -> None:
        """Insert or replace the schedule for (user_id, card_id).

        A failed write leaves the in-memory view matching the file.
        """
        key = (user_id, card_id)
        previous = self._reviews.get(key)
        self._reviews[key] = state
        try:
            self._save()
        except PersistenceFailure:
            if previous is None:
                del self._reviews[key]
            else:
                self._reviews[key] = previous
            raise
        logger.debug("Saved review %s/%s next=%s", user_id, card_id, state.next_review_at)

    def due_card_ids(self, user_id: str, as_of: Optional[datetime] = None) -> List[str]:
        """Card ids for user_id with next_review_at <= as_of, earliest first."""
        if as_of is None:
            as_of = datetime.now()
        due = [
            (state.next_review_at or datetime.min, card_id)
            for (uid, card_id), state in self._reviews.items()
            if uid == user_id and state.is_due(as_of)
        ]
        due.sort()
        return [card_id for _, card_id in due]

    def reviews_for_user(self, user_id: str) -> Dict[str, ReviewState]:
        return {cid: s for (uid, cid), s in self._reviews.items() if uid == user_id}

    def count(self) -> int:
        return len(self._reviews)


def load_deck(deck_path) -> List[Card]:
    """Read cards (one JSON object per line) from a deck file."""
    cards = []
    deck_path = Path(deck_path)
    if not deck_path.exists():
        return cards
    with open(deck_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line:
                cards.append(Card.from_dict(json.loads(line)))
    return cards


def attach_reviews(cards: List[Card], store: ReviewStore, user_id: str) -> List[Card]:
    """Attach each card's stored schedule for user_id (None for new cards)."""
    for card in cards:
        card.review = store.get_review(user_id, card.card_id)
    return cards
