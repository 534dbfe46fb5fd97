"""SQLAlchemy models for per-user review schedules."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class FlashcardReview(Base):
    """One row per (user, card); gradings update it in place."""

    __tablename__ = "flashcard_reviews"
    __table_args__ = (UniqueConstraint("user_id", "card_id", name="uq_flashcard_reviews_user_card"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    card_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    next_review_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    interval_days: Mapped[int] = mapped_column(Integer, default=0)
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
