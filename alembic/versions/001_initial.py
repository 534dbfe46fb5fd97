"""Initial schema: flashcard_reviews.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "flashcard_reviews",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("card_id", sa.String(64), nullable=False),
        sa.Column("next_review_at", sa.DateTime, nullable=False),
        sa.Column("interval_days", sa.Integer, server_default="0"),
        sa.Column("ease_factor", sa.Float, server_default="2.5"),
        sa.Column("repetitions", sa.Integer, server_default="0"),
        sa.Column("last_reviewed_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "card_id", name="uq_flashcard_reviews_user_card"),
    )
    op.create_index("ix_flashcard_reviews_user_id", "flashcard_reviews", ["user_id"])
    op.create_index("ix_flashcard_reviews_card_id", "flashcard_reviews", ["card_id"])
    op.create_index("ix_flashcard_reviews_next_review_at", "flashcard_reviews", ["next_review_at"])


def downgrade() -> None:
    op.drop_index("ix_flashcard_reviews_next_review_at", table_name="flashcard_reviews")
    op.drop_index("ix_flashcard_reviews_card_id", table_name="flashcard_reviews")
    op.drop_index("ix_flashcard_reviews_user_id", table_name="flashcard_reviews")
    op.drop_table("flashcard_reviews")
