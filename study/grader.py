"""Correctness check for quiz-mode sessions."""

from typing import Optional


def is_correct(user_answer: Optional[str], expected_answer: str) -> bool:
    """
    Exact match after trimming surrounding whitespace.

    Quiz answers are option labels or short literal values, so no fuzzy
    matching is applied. A missing answer is never correct.
    """
    if user_answer is None:
        return False
    return user_answer.strip() == expected_answer.strip()
