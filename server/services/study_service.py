"""Review service wrappers -- all return JSON-serializable dicts."""

from datetime import datetime
from typing import Dict, Optional

from study.models import ReviewState
from study.scheduler import InvalidArgument, preview_all_gradings, resolve_quality, schedule_review
from study.storage import ReviewStore


def _state_to_dict(state: ReviewState) -> Dict:
    return {
        'interval_days': state.interval_days,
        'ease_factor': state.ease_factor,
        'repetitions': state.repetitions,
        'next_review_at': state.next_review_at,
        'last_reviewed_at': state.last_reviewed_at,
    }


def get_due_cards(store: ReviewStore, user_id: str, limit: int = 50) -> Dict:
    """Return scheduled cards that are due for user_id, earliest first."""
    card_ids = store.due_card_ids(user_id)[:limit]
    return {
        'user_id': user_id,
        'due_count': len(card_ids),
        'card_ids': card_ids,
    }


def preview_card(
    store: ReviewStore,
    user_id: str,
    card_id: str,
    now: Optional[datetime] = None,
) -> Dict:
    """Would-be schedule per grading button; a card never graded uses the seed."""
    current = store.get_review(user_id, card_id)
    previews = preview_all_gradings(current, now=now)
    return {
        'user_id': user_id,
        'card_id': card_id,
        **{button: _state_to_dict(state) for button, state in previews.items()},
    }


def review_card(
    store: ReviewStore,
    user_id: str,
    card_id: str,
    quality: Optional[int] = None,
    button: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Grade a card and upsert its new schedule.

    Exactly one of quality/button must be given.

    Raises:
        InvalidArgument for a missing, doubled, or unknown grade.
        PersistenceFailure if the store cannot read or write.
    """
    if (quality is None) == (button is None):
        raise InvalidArgument("Provide exactly one of 'quality' or 'button'")
    quality = resolve_quality(button if button is not None else quality)

    prior = store.get_review(user_id, card_id)
    new_state = schedule_review(quality, prior, now=now)
    store.upsert_review(user_id, card_id, new_state)

    return {
        'user_id': user_id,
        'card_id': card_id,
        'quality': quality,
        'review': _state_to_dict(new_state),
    }
