"""Pydantic schemas for user ratings."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from swapchat.schemas.common import UtcDatetime

MIN_RATING = 1
MAX_RATING = 5


class RatingBase(BaseModel):
    rated_user_id: UUID
    rating: int
    comment: Optional[str] = Field(default=None, max_length=2000)
    swap_request_id: Optional[UUID] = None


class RatingCreate(RatingBase):
    """Range and self-rating checks happen in RatingService."""

    rater_user_id: UUID


class RatingBody(RatingBase):
    """API body; the rater is the authenticated user."""

    pass


class RatingRead(RatingBase):
    id: UUID
    rater_user_id: UUID
    created_at: UtcDatetime

    model_config = {"from_attributes": True}


class UserRatingSummary(BaseModel):
    user_id: UUID
    rating: Optional[float] = None
    rating_count: int = 0
    ratings: list[RatingRead] = []
