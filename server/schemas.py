"""Pydantic request/response schemas for the studydeck API."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, StrictInt


# ---- Review state ----

class ReviewStateSchema(BaseModel):
    interval_days: int
    ease_factor: float
    repetitions: int
    next_review_at: datetime
    last_reviewed_at: Optional[datetime] = None


# ---- Due Cards ----

class DueCardsResponse(BaseModel):
    user_id: str
    due_count: int
    card_ids: List[str]


# ---- Preview ----

class PreviewResponse(BaseModel):
    user_id: str
    card_id: str
    again: ReviewStateSchema
    hard: ReviewStateSchema
    good: ReviewStateSchema
    easy: ReviewStateSchema


# ---- Review ----

class ReviewRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    card_id: str = Field(..., min_length=1, max_length=64)
    quality: Optional[StrictInt] = Field(default=None, ge=0, le=5)
    button: Optional[str] = Field(default=None, max_length=16)


class ReviewResponse(BaseModel):
    user_id: str
    card_id: str
    quality: int
    review: ReviewStateSchema


# ---- Health ----

class StatusResponse(BaseModel):
    status: str
