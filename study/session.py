"""Review session driver and interactive review runner with injectable IO."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from study.grader import is_correct
from study.models import Card, ReviewState
from study.scheduler import (
    GRADE_BUTTONS,
    PASSING_QUALITY,
    InvalidArgument,
    preview_all_gradings,
    resolve_quality,
    schedule_review,
)
from study.session_log import log_session
from study.storage import PersistenceFailure, ReviewStore

logger = logging.getLogger("studydeck.session")

Clock = Callable[[], datetime]


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


class SessionMode(str, Enum):
    FLASHCARD = "flashcard"
    QUIZ = "quiz"


@dataclass
class SessionProgress:
    completed: int
    total: int
    percentage: int


@dataclass
class Grading:
    """One grading event recorded by a session."""
    card_id: str
    quality: int
    state: ReviewState
    saved: bool = False

    def to_dict(self) -> Dict:
        return {
            'card_id': self.card_id,
            'quality': self.quality,
            'interval_days': self.state.interval_days,
            'ease_factor': self.state.ease_factor,
            'repetitions': self.state.repetitions,
            'saved': self.saved,
        }


class ReviewSession:
    """
    In-memory state for one review sitting: IDLE -> ACTIVE -> COMPLETED.

    The session never owns a timer. Elapsed time is pushed in by the caller
    (update_elapsed_time) or read from the injected clock on tick().
    Gradings are written through `store` keyed by (user_id, card_id).
    """

    def __init__(
        self,
        user_id: str,
        store: Optional[ReviewStore] = None,
        clock: Clock = datetime.now,
        mode: Union[SessionMode, str] = SessionMode.FLASHCARD,
    ):
        self.user_id = user_id
        self.store = store
        self.clock = clock
        self.mode = SessionMode(mode)
        self.state = SessionState.IDLE
        self.cards: List[Card] = []
        self.index = 0
        self.answers: Dict[str, str] = {}
        self.gradings: List[Grading] = []
        self.pending: Dict[str, ReviewState] = {}
        self.started_at: Optional[datetime] = None
        self.elapsed_seconds: float = 0.0

    # ---- Queue ----

    def load_queue(self, cards: List[Card]) -> None:
        """Start a sitting over `cards`. An empty queue is immediately COMPLETED."""
        self.cards = list(cards)
        self.index = 0
        self.answers = {}
        self.gradings = []
        self.state = SessionState.ACTIVE if self.cards else SessionState.COMPLETED
        logger.info("Session for %s loaded %d card(s)", self.user_id, len(self.cards))

    def current_card(self) -> Optional[Card]:
        if self.state is not SessionState.ACTIVE:
            return None
        if 0 <= self.index < len(self.cards):
            return self.cards[self.index]
        return None

    def submit_answer(self, card_id: str, answer: str) -> bool:
        """Record an answer without moving the index. Ignored while IDLE."""
        if self.state is SessionState.IDLE:
            return False
        self.answers[card_id] = answer
        return True

    def advance(self) -> SessionState:
        if self.state is SessionState.ACTIVE:
            self.index += 1
            if self.index >= len(self.cards):
                self.state = SessionState.COMPLETED
                logger.info("Session for %s completed", self.user_id)
        return self.state

    def jump_to(self, index: int) -> bool:
        """Move to an arbitrary card of an ACTIVE session."""
        if self.state is not SessionState.ACTIVE or not (0 <= index < len(self.cards)):
            return False
        self.index = index
        return True

    def reset(self) -> None:
        """Drop all session data. Writes already flushed to the store stay."""
        if self.pending:
            logger.warning("Session for %s reset with %d unsaved grading(s)",
                           self.user_id, len(self.pending))
        self.state = SessionState.IDLE
        self.cards = []
        self.index = 0
        self.answers = {}
        self.gradings = []
        self.pending = {}
        self.started_at = None
        self.elapsed_seconds = 0.0

    # ---- Timing ----

    def start_timer(self) -> datetime:
        if self.started_at is None:
            self.started_at = self.clock()
        return self.started_at

    def update_elapsed_time(self, seconds: float) -> None:
        self.elapsed_seconds = seconds

    def tick(self) -> float:
        """Refresh elapsed_seconds from the injected clock."""
        if self.started_at is not None:
            self.elapsed_seconds = (self.clock() - self.started_at).total_seconds()
        return self.elapsed_seconds

    # ---- Progress ----

    def progress(self) -> SessionProgress:
        total = len(self.cards)
        completed = sum(1 for c in self.cards if c.card_id in self.answers)
        # half-up, not banker's rounding
        percentage = math.floor(completed / total * 100 + 0.5) if total else 0
        return SessionProgress(completed=completed, total=total, percentage=percentage)

    def score(self) -> int:
        """Quiz mode: number of answers matching the card's answer."""
        return sum(
            1 for c in self.cards
            if c.card_id in self.answers and is_correct(self.answers[c.card_id], c.answer)
        )

    # ---- Grading ----

    def _find_card(self, card_id: Optional[str]) -> Card:
        if card_id is None:
            card = self.current_card()
            if card is None:
                raise InvalidArgument("No current card to grade")
            return card
        for card in self.cards:
            if card.card_id == card_id:
                return card
        raise InvalidArgument(f"Card not in session: {card_id}")

    def grade_card(
        self,
        grading: Union[int, str],
        card_id: Optional[str] = None,
    ) -> ReviewState:
        """
        Schedule a card from a 0-5 quality or a button name and persist it.

        The prior state is the card's attached review, else the stored one,
        else the seed. The new state is kept on the card and in `gradings`
        even if the store write fails; in that case the write stays in
        `pending` and PersistenceFailure is raised.
        """
        quality = resolve_quality(grading)
        card = self._find_card(card_id)

        prior = card.review
        if prior is None and self.store is not None:
            prior = self.store.get_review(self.user_id, card.card_id)

        new_state = schedule_review(quality, prior, now=self.clock())
        card.review = new_state
        record = Grading(card_id=card.card_id, quality=quality, state=new_state)
        self.gradings.append(record)

        self._persist(record)
        return new_state

    def _persist(self, record: Grading) -> None:
        if self.store is None:
            return
        try:
            self.store.upsert_review(self.user_id, record.card_id, record.state)
        except Exception as e:
            self.pending[record.card_id] = record.state
            logger.warning("Failed to save review %s/%s: %s", self.user_id, record.card_id, e)
            if isinstance(e, PersistenceFailure):
                raise
            raise PersistenceFailure(f"Failed to save review for {record.card_id}: {e}") from e
        record.saved = True
        self.pending.pop(record.card_id, None)

    def retry_pending(self) -> int:
        """Re-attempt unsaved writes. Returns how many were flushed."""
        if self.store is None:
            return 0
        flushed = 0
        for card_id, state in list(self.pending.items()):
            try:
                self.store.upsert_review(self.user_id, card_id, state)
            except PersistenceFailure:
                raise
            except Exception as e:
                raise PersistenceFailure(f"Failed to save review for {card_id}: {e}") from e
            del self.pending[card_id]
            for g in self.gradings:
                if g.card_id == card_id and g.state is state:
                    g.saved = True
            flushed += 1
        if flushed:
            logger.info("Flushed %d pending review(s) for %s", flushed, self.user_id)
        return flushed

    def summary(self) -> Dict:
        passed = sum(1 for g in self.gradings if g.quality >= PASSING_QUALITY)
        summary = {
            'user_id': self.user_id,
            'mode': self.mode.value,
            'total': len(self.cards),
            'answered': self.progress().completed,
            'graded': len(self.gradings),
            'passed': passed,
            'failed': len(self.gradings) - passed,
            'unsaved': len(self.pending),
            'elapsed_seconds': self.elapsed_seconds,
        }
        if self.mode is SessionMode.QUIZ:
            summary['correct'] = self.score()
        return summary


def select_due_cards(
    cards: List[Card],
    as_of: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[Card]:
    """
    New cards plus cards whose review is due, earliest first.

    New cards (no review yet) come before scheduled ones and keep input order.
    """
    if as_of is None:
        as_of = datetime.now()
    new = [c for c in cards if c.review is None]
    due = [c for c in cards if c.review is not None and c.review.is_due(as_of)]
    due.sort(key=lambda c: c.review.next_review_at or datetime.min)
    selected = new + due
    if limit is not None:
        selected = selected[:limit]
    return selected


_SHORTCUTS = {'a': 'again', 'h': 'hard', 'g': 'good', 'e': 'easy'}


def _parse_grade(text: str) -> Optional[int]:
    text = text.strip().lower()
    if text in _SHORTCUTS:
        text = _SHORTCUTS[text]
    try:
        if text.isdigit():
            return resolve_quality(int(text))
        return resolve_quality(text)
    except InvalidArgument:
        return None


def _format_previews(previews: Dict[str, ReviewState]) -> str:
    return '  '.join(f"{button}: {state.interval_days}d" for button, state in previews.items())


def run_review_session(
    session: ReviewSession,
    cards: List[Card],
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
    log_path: Optional[Path] = None,
) -> Dict:
    """
    Run an interactive flashcard review over `cards`.

    IO is injectable for testability.

    Flow per card:
        1. Show prompt, wait for reveal ('q' quits, 's' skips)
        2. Show answer and the interval each button would give
        3. Read a grade (a/h/g/e, button name, or 0-5)
        4. Grade through the session (scheduler + store)
        5. Advance

    Returns:
        The session summary plus 'skipped'.
    """
    skipped = 0
    session.load_queue(cards)
    session.start_timer()

    output_fn(f"\n{'='*60}")
    output_fn(f"REVIEW SESSION -- {len(session.cards)} card(s) due")
    output_fn(f"{'='*60}")
    output_fn("Press Enter to reveal. Type 'q' to quit early, 's' to skip a card.\n")

    quit_early = False
    while session.state is SessionState.ACTIVE:
        card = session.current_card()
        output_fn(f"\n--- Card {session.index + 1}/{len(session.cards)} ---")
        output_fn(f"  {card.prompt}")

        try:
            reply = input_fn("\nReveal: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            output_fn("\nSession ended.")
            break

        if reply == 'q':
            output_fn("Ending session early.")
            break
        if reply == 's':
            skipped += 1
            output_fn("  (skipped)")
            session.advance()
            continue

        output_fn(f"  Answer: {card.answer}")
        previews = preview_all_gradings(card.review, now=session.clock())
        output_fn(f"  {_format_previews(previews)}")

        quality = None
        while quality is None:
            try:
                choice = input_fn("Grade [a]gain/[h]ard/[g]ood/[e]asy or 0-5: ")
            except (EOFError, KeyboardInterrupt):
                quit_early = True
                break
            if choice.strip().lower() == 'q':
                quit_early = True
                break
            quality = _parse_grade(choice)
            if quality is None:
                output_fn(f"  Unrecognized grade {choice!r}; use {', '.join(GRADE_BUTTONS)} or 0-5.")
        if quit_early:
            output_fn("Ending session early.")
            break

        session.submit_answer(card.card_id, str(quality))
        state = None
        graded_before = len(session.gradings)
        try:
            state = session.grade_card(quality, card.card_id)
        except PersistenceFailure as e:
            output_fn(f"  [warn] Could not save this review: {e}")
            if len(session.gradings) > graded_before:
                state = session.gradings[-1].state
        if state is not None:
            output_fn(f"  Next review: {state.next_review_at:%Y-%m-%d} "
                      f"(interval: {state.interval_days}d)")
        session.advance()

    session.tick()
    summary = session.summary()
    summary['skipped'] = skipped

    output_fn(f"\n{'='*60}")
    output_fn("SESSION COMPLETE")
    output_fn(f"  Graded: {summary['graded']}  Passed: {summary['passed']}  "
              f"Failed: {summary['failed']}  Skipped: {skipped}")
    if summary['unsaved']:
        output_fn(f"  Unsaved: {summary['unsaved']} review(s) could not be stored")
    output_fn(f"{'='*60}")

    if log_path and session.gradings:
        log_session(log_path, summary, [g.to_dict() for g in session.gradings])

    return summary
