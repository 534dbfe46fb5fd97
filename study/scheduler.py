"""SM-2 spaced repetition scheduler."""

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Optional, Union

from study.models import MIN_EASE_FACTOR, ReviewState

logger = logging.getLogger("studydeck.scheduler")

PASSING_QUALITY = 3

# Canonical UI grading buttons. Changing a value changes scheduling app-wide.
GRADE_BUTTONS: Dict[str, int] = {
    'again': 0,
    'hard': 3,
    'good': 4,
    'easy': 5,
}


class InvalidArgument(ValueError):
    """Raised for out-of-range grades, malformed prior state, or unknown buttons."""


def _check_quality(quality) -> int:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidArgument(f"Quality must be an integer 0-5, got {quality!r}")
    if not (0 <= quality <= 5):
        raise InvalidArgument(f"Quality must be 0-5, got {quality}")
    return quality


def _round_half_up(value: float) -> int:
    # half-up: 12.5 -> 13, unlike round()
    return int(math.floor(value + 0.5))


def quality_for_button(button: str) -> int:
    """Map a grading button name (again/hard/good/easy) to its quality value."""
    key = str(button).strip().lower()
    if key not in GRADE_BUTTONS:
        raise InvalidArgument(
            f"Unknown grading button {button!r}; expected one of {', '.join(GRADE_BUTTONS)}"
        )
    return GRADE_BUTTONS[key]


def resolve_quality(grading: Union[int, str]) -> int:
    """Accept either a 0-5 quality or a canonical button name."""
    if isinstance(grading, str):
        return quality_for_button(grading)
    return _check_quality(grading)


def compute_next_schedule(
    quality: int,
    prev_interval_days: int,
    prev_ease_factor: float,
    prev_repetitions: int,
    now: Optional[datetime] = None,
) -> ReviewState:
    """
    SM-2 spaced repetition scheduling.

    Args:
        quality:            User grade 0-5 (0=blackout, 5=perfect); >= 3 is a pass
        prev_interval_days: Current interval in days (0 for a new card)
        prev_ease_factor:   Current ease factor (>= 1.3)
        prev_repetitions:   Consecutive successful recalls so far
        now:                Review time; defaults to the local wall clock

    Returns:
        ReviewState with the new interval, ease, repetitions and due time.
        next_review_at keeps the time of day of `now`.

    A failed recall resets the streak and the interval but leaves the ease
    factor unchanged, as in classic SM-2.
    """
    _check_quality(quality)
    if prev_interval_days < 0:
        raise InvalidArgument(f"Interval must be >= 0, got {prev_interval_days}")
    if prev_repetitions < 0:
        raise InvalidArgument(f"Repetitions must be >= 0, got {prev_repetitions}")
    if prev_ease_factor < MIN_EASE_FACTOR:
        raise InvalidArgument(
            f"Ease factor must be >= {MIN_EASE_FACTOR}, got {prev_ease_factor}"
        )

    if now is None:
        now = datetime.now()

    if quality >= PASSING_QUALITY:
        if prev_repetitions == 0:
            new_interval = 1
        elif prev_repetitions == 1:
            new_interval = 6
        else:
            new_interval = _round_half_up(prev_interval_days * prev_ease_factor)
        new_repetitions = prev_repetitions + 1

        # EF' = EF + (0.1 - (5-q) * (0.08 + (5-q) * 0.02))
        new_ease = prev_ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    else:
        new_interval = 1
        new_repetitions = 0
        new_ease = prev_ease_factor

    new_ease = max(MIN_EASE_FACTOR, new_ease)
    # a tiny prior interval can round to 0
    new_interval = max(1, new_interval)

    logger.debug(
        "sm2 q=%d reps %d->%d interval %d->%d ease %.4f->%.4f",
        quality, prev_repetitions, new_repetitions,
        prev_interval_days, new_interval, prev_ease_factor, new_ease,
    )

    return ReviewState(
        interval_days=new_interval,
        ease_factor=new_ease,
        repetitions=new_repetitions,
        next_review_at=now + timedelta(days=new_interval),
        last_reviewed_at=now,
    )


def schedule_review(
    quality: int,
    prev_state: Optional[ReviewState] = None,
    now: Optional[datetime] = None,
) -> ReviewState:
    """Schedule from a stored state; None means the card was never graded."""
    if prev_state is None:
        prev_state = ReviewState.seed()
    return compute_next_schedule(
        quality,
        prev_state.interval_days,
        prev_state.ease_factor,
        prev_state.repetitions,
        now=now,
    )


def preview_all_gradings(
    current_state: Optional[ReviewState] = None,
    now: Optional[datetime] = None,
) -> Dict[str, ReviewState]:
    """
    Would-be schedule for each grading button, without touching current_state.

    All four previews share one `now` so their due dates are comparable.
    """
    if now is None:
        now = datetime.now()
    return {
        button: schedule_review(quality, current_state, now=now)
        for button, quality in GRADE_BUTTONS.items()
    }
