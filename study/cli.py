"""
Review mode CLI.

Usage:
    python -m study.cli --db reviews.jsonl --deck cards.jsonl --user alice due
    python -m study.cli --db reviews.jsonl --deck cards.jsonl --user alice review [--limit N]
    python -m study.cli --db reviews.jsonl --deck cards.jsonl --user alice preview <card_id>

Without --db or --session-log, paths come from STUDYDECK_DATA_DIR, REVIEW_DB_PATH
and SESSION_LOG_PATH (see server.config.Settings).
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from server.config import Settings
from study.scheduler import preview_all_gradings
from study.session import ReviewSession, run_review_session, select_due_cards
from study.storage import JsonlReviewStore, attach_reviews, load_deck


def _resolve_paths(args):
    """Default --db and --session-log from Settings."""
    if args.db is None or args.session_log is None:
        settings = Settings()
        if args.db is None:
            args.db = settings.review_db_path
        if args.session_log is None:
            args.session_log = settings.session_log_path


def _load(args):
    store = JsonlReviewStore(args.db)
    cards = attach_reviews(load_deck(args.deck), store, args.user)
    return store, cards


def cmd_due(args):
    """Show due cards."""
    _, cards = _load(args)
    due = select_due_cards(cards, limit=args.limit)
    if not due:
        print("No cards due today.")
        return
    print(f"\n{len(due)} card(s) due for review:\n")
    for i, card in enumerate(due, 1):
        print(f"  {i}. {card.prompt[:80]}")
        if card.review is None:
            print("     new")
        else:
            r = card.review
            print(f"     due={r.next_review_at:%Y-%m-%d}  ease={r.ease_factor:.2f}  "
                  f"reps={r.repetitions}  interval={r.interval_days}d")


def cmd_review(args):
    """Run interactive review session."""
    store, cards = _load(args)
    due = select_due_cards(cards, limit=args.limit)
    if not due:
        print("No cards due today. Come back later!")
        return
    session = ReviewSession(args.user, store=store)
    run_review_session(session, due, input_fn=input, output_fn=print,
                       log_path=Path(args.session_log))


def cmd_preview(args):
    """Show the next interval for each grading button."""
    _, cards = _load(args)
    card = next((c for c in cards if c.card_id == args.card_id), None)
    if card is None:
        print(f"Card not found: {args.card_id}")
        sys.exit(1)

    now = datetime.now()
    print(f"\nCard: {card.card_id}")
    print(f"  {card.prompt}")
    for button, state in preview_all_gradings(card.review, now=now).items():
        print(f"  {button:<6} -> {state.interval_days:>4}d  "
              f"(next {state.next_review_at:%Y-%m-%d}, ease {state.ease_factor:.2f})")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Review mode -- SM-2 spaced repetition for flashcards",
        prog="python -m study.cli",
    )
    parser.add_argument(
        '--db', default=None,
        help="Path to review storage JSONL file (default: <data dir>/reviews.jsonl)",
    )
    parser.add_argument(
        '--session-log', default=None,
        help="Path to the session log JSONL file (default: <data dir>/session_log.jsonl)",
    )
    parser.add_argument(
        '--deck', default='cards.jsonl',
        help="Path to the card deck JSONL file (default: cards.jsonl)",
    )
    parser.add_argument('--user', default='local', help="User id (default: local)")
    parser.add_argument('--log-level', default='WARNING', help="Logging level")

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    due_parser = subparsers.add_parser('due', help='Show cards due for review')
    due_parser.add_argument('--limit', type=int, default=50, help='Max cards (default: 50)')

    review_parser = subparsers.add_parser('review', help='Run interactive review session')
    review_parser.add_argument('--limit', type=int, default=50, help='Max cards (default: 50)')

    preview_parser = subparsers.add_parser('preview', help='Preview intervals for a card')
    preview_parser.add_argument('card_id', help='Card ID to preview')

    args = parser.parse_args(argv)
    _resolve_paths(args)
    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == 'due':
        cmd_due(args)
    elif args.command == 'review':
        cmd_review(args)
    elif args.command == 'preview':
        cmd_preview(args)
    else:
        parser.print_help()


if __name__ == '__main__':
    main()
