"""Tests for study/session.py -- review session driver and runner."""

import sys
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from study.models import Card, ReviewState
from study.scheduler import InvalidArgument
from study.session import (
    ReviewSession,
    SessionMode,
    SessionState,
    run_review_session,
    select_due_cards,
)
from study.session_log import read_session_log
from study.storage import JsonlReviewStore, PersistenceFailure

NOW = datetime(2026, 3, 14, 9, 30)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start=NOW):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FlakyStore:
    """In-memory store whose writes fail while `failing` is set."""

    def __init__(self):
        self.reviews = {}
        self.failing = False
        self.writes = 0

    def get_review(self, user_id, card_id):
        return self.reviews.get((user_id, card_id))

    def upsert_review(self, user_id, card_id, state):
        self.writes += 1
        if self.failing:
            raise OSError("disk full")
        self.reviews[(user_id, card_id)] = state

    def due_card_ids(self, user_id, as_of=None):
        return []


def _make_cards(n=3):
    return [Card(card_id=f'c{i}', prompt=f'Q{i}?', answer=f'A{i}') for i in range(n)]


# ============================================================================
# State machine
# ============================================================================

def test_new_session_is_idle():
    session = ReviewSession('u1')
    assert session.state is SessionState.IDLE
    assert session.current_card() is None


def test_session_progression():
    """Three cards: 0% before answers, 33% after one, COMPLETED after the third advance."""
    session = ReviewSession('u1')
    session.load_queue(_make_cards(3))
    assert session.state is SessionState.ACTIVE

    progress = session.progress()
    assert (progress.completed, progress.total, progress.percentage) == (0, 3, 0)

    session.submit_answer('c0', 'A0')
    progress = session.progress()
    assert progress.completed == 1
    assert progress.percentage == 33

    assert session.advance() is SessionState.ACTIVE
    assert session.advance() is SessionState.ACTIVE
    assert session.current_card().card_id == 'c2'
    assert session.advance() is SessionState.COMPLETED
    assert session.current_card() is None


def test_submit_answer_does_not_advance():
    session = ReviewSession('u1')
    session.load_queue(_make_cards(2))
    session.submit_answer('c0', 'x')
    assert session.index == 0
    assert session.current_card().card_id == 'c0'


def test_submit_answer_ignored_while_idle():
    session = ReviewSession('u1')
    assert session.submit_answer('c0', 'x') is False
    assert session.answers == {}


def test_percentage_rounds_half_up():
    session = ReviewSession('u1')
    session.load_queue(_make_cards(8))
    session.submit_answer('c0', 'x')
    assert session.progress().percentage == 13


def test_empty_queue_has_no_card():
    session = ReviewSession('u1')
    session.load_queue([])
    assert session.current_card() is None
    assert session.state is SessionState.COMPLETED
    assert session.progress().percentage == 0


def test_load_queue_clears_answers():
    session = ReviewSession('u1')
    session.load_queue(_make_cards(2))
    session.submit_answer('c0', 'x')
    session.advance()
    session.load_queue(_make_cards(2))
    assert session.index == 0
    assert session.answers == {}


def test_jump_to():
    session = ReviewSession('u1')
    session.load_queue(_make_cards(3))
    assert session.jump_to(2) is True
    assert session.current_card().card_id == 'c2'
    assert session.jump_to(3) is False
    assert session.jump_to(-1) is False


def test_advance_when_idle_is_noop():
    session = ReviewSession('u1')
    assert session.advance() is SessionState.IDLE
    assert session.index == 0


def test_reset_discards_everything():
    clock = FakeClock()
    session = ReviewSession('u1', clock=clock)
    session.load_queue(_make_cards(2))
    session.start_timer()
    session.submit_answer('c0', 'x')
    session.grade_card('good')
    session.reset()
    assert session.state is SessionState.IDLE
    assert session.cards == []
    assert session.answers == {}
    assert session.gradings == []
    assert session.started_at is None
    assert session.elapsed_seconds == 0.0


# ============================================================================
# Timing
# ============================================================================

def test_start_timer_records_once():
    clock = FakeClock()
    session = ReviewSession('u1', clock=clock)
    first = session.start_timer()
    clock.advance(minutes=5)
    assert session.start_timer() == first == NOW


def test_elapsed_time_is_externally_driven():
    clock = FakeClock()
    session = ReviewSession('u1', clock=clock)
    session.start_timer()
    clock.advance(seconds=90)
    assert session.elapsed_seconds == 0.0
    session.update_elapsed_time(42)
    assert session.elapsed_seconds == 42
    assert session.tick() == 90.0


def test_tick_before_start_keeps_value():
    session = ReviewSession('u1', clock=FakeClock())
    session.update_elapsed_time(7)
    assert session.tick() == 7


# ============================================================================
# Grading
# ============================================================================

def test_grade_current_card_persists_to_store():
    with tempfile.TemporaryDirectory() as tmp:
        store = JsonlReviewStore(Path(tmp) / 'reviews.jsonl')
        session = ReviewSession('u1', store=store, clock=FakeClock())
        session.load_queue(_make_cards(2))

        state = session.grade_card('good')

        assert state.interval_days == 1
        assert state.next_review_at == NOW + timedelta(days=1)
        assert store.get_review('u1', 'c0') == state
        assert session.gradings[0].saved is True
        assert session.index == 0


def test_grade_uses_stored_prior_state():
    store = FlakyStore()
    store.reviews[('u1', 'c0')] = ReviewState(interval_days=6, ease_factor=2.5, repetitions=2)
    session = ReviewSession('u1', store=store, clock=FakeClock())
    session.load_queue(_make_cards(1))
    state = session.grade_card(4)
    assert state.interval_days == 15
    assert state.repetitions == 3


def test_grade_prefers_attached_review():
    store = FlakyStore()
    store.reviews[('u1', 'c0')] = ReviewState(interval_days=6, ease_factor=2.5, repetitions=2)
    card = Card(card_id='c0', review=ReviewState(interval_days=1, ease_factor=2.5, repetitions=1))
    session = ReviewSession('u1', store=store, clock=FakeClock())
    session.load_queue([card])
    assert session.grade_card('good').interval_days == 6


def test_regrading_builds_on_previous_grading():
    session = ReviewSession('u1', clock=FakeClock())
    session.load_queue(_make_cards(1))
    intervals = [session.grade_card('good').interval_days for _ in range(3)]
    assert intervals == [1, 6, 15]


def test_grade_by_card_id():
    session = ReviewSession('u1', clock=FakeClock())
    session.load_queue(_make_cards(3))
    session.grade_card('again', card_id='c2')
    assert session.cards[2].review.repetitions == 0
    assert session.cards[0].review is None


def test_grade_invalid_inputs():
    session = ReviewSession('u1', clock=FakeClock())
    with pytest.raises(InvalidArgument):
        session.grade_card('good')  # idle: no current card
    session.load_queue(_make_cards(1))
    with pytest.raises(InvalidArgument):
        session.grade_card(7)
    with pytest.raises(InvalidArgument):
        session.grade_card('meh')
    with pytest.raises(InvalidArgument):
        session.grade_card('good', card_id='missing')
    assert session.gradings == []


def test_persistence_failure_is_reported_but_not_fatal():
    store = FlakyStore()
    store.failing = True
    session = ReviewSession('u1', store=store, clock=FakeClock())
    session.load_queue(_make_cards(2))

    with pytest.raises(PersistenceFailure) as exc:
        session.grade_card('good')
    assert isinstance(exc.value.__cause__, OSError)

    # In-memory session keeps going
    assert session.cards[0].review.interval_days == 1
    assert session.gradings[0].saved is False
    assert 'c0' in session.pending
    session.advance()
    assert session.current_card().card_id == 'c1'

    store.failing = False
    session.grade_card('easy')
    assert session.retry_pending() == 1
    assert session.pending == {}
    assert session.gradings[0].saved is True
    assert ('u1', 'c0') in store.reviews


def test_retry_pending_still_failing():
    store = FlakyStore()
    store.failing = True
    session = ReviewSession('u1', store=store, clock=FakeClock())
    session.load_queue(_make_cards(1))
    with pytest.raises(PersistenceFailure):
        session.grade_card('good')
    with pytest.raises(PersistenceFailure):
        session.retry_pending()
    assert 'c0' in session.pending


def test_quiz_score():
    session = ReviewSession('u1', mode='quiz')
    session.load_queue(_make_cards(3))
    session.submit_answer('c0', ' A0 ')
    session.submit_answer('c1', 'wrong')
    assert session.mode is SessionMode.QUIZ
    assert session.score() == 1
    summary = session.summary()
    assert summary['correct'] == 1
    assert summary['answered'] == 2


# ============================================================================
# Due selection
# ============================================================================

def test_select_due_cards_orders_new_then_earliest():
    cards = [
        Card(card_id='later', review=ReviewState(1, 2.5, 1, next_review_at=NOW - timedelta(hours=1))),
        Card(card_id='new'),
        Card(card_id='future', review=ReviewState(6, 2.5, 2, next_review_at=NOW + timedelta(days=2))),
        Card(card_id='earliest', review=ReviewState(1, 2.5, 1, next_review_at=NOW - timedelta(days=3))),
    ]
    due = select_due_cards(cards, as_of=NOW)
    assert [c.card_id for c in due] == ['new', 'earliest', 'later']
    assert [c.card_id for c in select_due_cards(cards, as_of=NOW, limit=2)] == ['new', 'earliest']


# ============================================================================
# Interactive runner
# ============================================================================

def test_full_session():
    """Grade every card, verify storage, summary, and the session log."""
    with tempfile.TemporaryDirectory() as tmp:
        store = JsonlReviewStore(Path(tmp) / 'reviews.jsonl')
        log_path = Path(tmp) / 'session_log.jsonl'
        session = ReviewSession('u1', store=store, clock=FakeClock())
        answers = iter(['', 'g', '', 'again', '', '5'])
        output_lines = []

        summary = run_review_session(
            session, _make_cards(3),
            input_fn=lambda _: next(answers),
            output_fn=output_lines.append,
            log_path=log_path,
        )

        assert summary['graded'] == 3
        assert summary['passed'] == 2
        assert summary['failed'] == 1
        assert summary['skipped'] == 0
        assert session.state is SessionState.COMPLETED
        assert store.count() == 3
        joined = '\n'.join(output_lines)
        assert 'again: 1d' in joined
        assert 'SESSION COMPLETE' in joined
        records = read_session_log(log_path)
        assert len(records) == 1
        assert records[0]['cards_graded'] == 3


def test_quit_early():
    session = ReviewSession('u1', clock=FakeClock())
    answers = iter(['q'])
    summary = run_review_session(session, _make_cards(3),
                                 input_fn=lambda _: next(answers),
                                 output_fn=lambda s: None)
    assert summary['graded'] == 0


def test_skip_card():
    session = ReviewSession('u1', clock=FakeClock())
    answers = iter(['s', '', 'h'])
    summary = run_review_session(session, _make_cards(2),
                                 input_fn=lambda _: next(answers),
                                 output_fn=lambda s: None)
    assert summary['skipped'] == 1
    assert summary['graded'] == 1
    assert summary['answered'] == 1


def test_unrecognized_grade_reprompts():
    session = ReviewSession('u1', clock=FakeClock())
    answers = iter(['', 'maybe', '9', 'easy'])
    output_lines = []
    summary = run_review_session(session, _make_cards(1),
                                 input_fn=lambda _: next(answers),
                                 output_fn=output_lines.append)
    assert summary['graded'] == 1
    assert sum('Unrecognized grade' in line for line in output_lines) == 2


def test_runner_survives_persistence_failure():
    store = FlakyStore()
    store.failing = True
    session = ReviewSession('u1', store=store, clock=FakeClock())
    answers = iter(['', 'good', '', 'good'])
    output_lines = []
    summary = run_review_session(session, _make_cards(2),
                                 input_fn=lambda _: next(answers),
                                 output_fn=output_lines.append)
    assert summary['graded'] == 2
    assert summary['unsaved'] == 2
    assert any('[warn]' in line for line in output_lines)
    assert any('Unsaved: 2' in line for line in output_lines)
