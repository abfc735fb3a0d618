"""Ratings API: rate a swap counterparty, read a user's ratings."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from swapchat.db import get_db
from swapchat.routers.utils.dependencies import get_current_user_id
from swapchat.schemas.rating import (
    RatingBody,
    RatingCreate,
    RatingRead,
    UserRatingSummary,
)
from swapchat.services.rating_service import RatingService

router = APIRouter(
    prefix="/ratings",
    tags=["ratings"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=RatingRead, status_code=201)
def submit_rating(
    data: RatingBody,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> RatingRead:
    """Rate the other party of a swap. The caller is the rater."""
    svc = RatingService(db)
    return svc.submit_rating(RatingCreate(rater_user_id=user_id, **data.model_dump()))


@router.get("/users/{user_id}", response_model=UserRatingSummary)
def get_user_ratings(
    user_id: UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> UserRatingSummary:
    """Ratings a user received, newest first, with their aggregate rating."""
    svc = RatingService(db)
    ratings = svc.get_ratings_for_user(user_id, skip=skip, limit=limit)
    return UserRatingSummary(
        user_id=user_id,
        rating=svc.compute_user_rating(user_id),
        rating_count=svc.count_ratings_for_user(user_id),
        ratings=[RatingRead.model_validate(r) for r in ratings],
    )
