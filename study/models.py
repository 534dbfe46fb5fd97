"""Data models for the review engine: ReviewState and Card dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


SEED_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


def _parse_dt(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class ReviewState:
    """
    Per-user, per-card SM-2 memory model.

    A card that was never graded has no stored state; callers use
    ReviewState.seed() in its place.
    """
    interval_days: int = 0
    ease_factor: float = SEED_EASE_FACTOR
    repetitions: int = 0
    next_review_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None

    @classmethod
    def seed(cls) -> 'ReviewState':
        return cls(interval_days=0, ease_factor=SEED_EASE_FACTOR, repetitions=0)

    def is_due(self, as_of: datetime) -> bool:
        """Seed states (no next_review_at) are always due."""
        return self.next_review_at is None or self.next_review_at <= as_of

    def to_dict(self) -> Dict:
        return {
            'interval_days': self.interval_days,
            'ease_factor': self.ease_factor,
            'repetitions': self.repetitions,
            'next_review_at': self.next_review_at.isoformat() if self.next_review_at else None,
            'last_reviewed_at': self.last_reviewed_at.isoformat() if self.last_reviewed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'ReviewState':
        return cls(
            interval_days=int(data.get('interval_days', 0)),
            ease_factor=float(data.get('ease_factor', SEED_EASE_FACTOR)),
            repetitions=int(data.get('repetitions', 0)),
            next_review_at=_parse_dt(data.get('next_review_at')),
            last_reviewed_at=_parse_dt(data.get('last_reviewed_at')),
        )


@dataclass
class Card:
    """
    A flashcard as seen by a review session.

    Content is owned elsewhere; `review` carries the latest stored schedule
    the caller read alongside the card, or None for a new card.
    """
    card_id: str
    prompt: str = ''
    answer: str = ''
    card_type: str = 'flashcard'
    tags: List[str] = field(default_factory=list)
    review: Optional[ReviewState] = None

    def to_dict(self) -> Dict:
        return {
            'card_id': self.card_id,
            'prompt': self.prompt,
            'answer': self.answer,
            'card_type': self.card_type,
            'tags': list(self.tags),
            'review': self.review.to_dict() if self.review else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Card':
        data = dict(data)  # shallow copy
        review = data.get('review')
        if isinstance(review, dict):
            data['review'] = ReviewState.from_dict(review)
        known = cls.__dataclass_fields__
        data = {k: v for k, v in data.items() if k in known}
        return cls(**data)
