"""
Rating ledger: post-swap ratings between the two parties of a swap.

Ratings are insert-only. A rater may rate the same swap more than once; the
aggregate counts only the latest rating per (rater, swap request).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swapchat.exceptions import NotFoundError, NotParticipantError, ValidationError
from swapchat.models.rating import Rating
from swapchat.models.swap_request import SwapRequest
from swapchat.schemas.notification import NotificationType
from swapchat.schemas.rating import MAX_RATING, MIN_RATING, RatingCreate
from swapchat.services.notification_service import NotificationService
from swapchat.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


class RatingService:
    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        profile_service: Optional[ProfileService] = None,
    ) -> None:
        self.db = db
        self._notifications = notification_service or NotificationService(db)
        self._profiles = profile_service or ProfileService(db)

    def submit_rating(self, data: RatingCreate) -> Rating:
        """
        Persist a rating, then refresh the rated user's aggregate.

        Raises:
            ValidationError: self-rating, rating outside 1..5, or the two users
                are not the parties of the given swap request.
            NotFoundError: swap_request_id does not exist.
        """
        if data.rater_user_id == data.rated_user_id:
            raise ValidationError("Users cannot rate themselves")
        if not MIN_RATING <= data.rating <= MAX_RATING:
            raise ValidationError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {data.rating}"
            )
        if data.swap_request_id is not None:
            request = (
                self.db.query(SwapRequest)
                .filter(SwapRequest.id == data.swap_request_id)
                .first()
            )
            if request is None:
                raise NotFoundError(f"Swap request {data.swap_request_id} not found")
            parties = {request.requester_id, request.owner_id}
            if {data.rater_user_id, data.rated_user_id} != parties:
                raise NotParticipantError(
                    "Only the two parties of a swap request can rate each other"
                )

        rating = Rating(**data.model_dump())
        self.db.add(rating)
        self.db.commit()
        self.db.refresh(rating)
        logger.info(
            "Rating %s stored: %s rated %s with %d",
            rating.id,
            rating.rater_user_id,
            rating.rated_user_id,
            rating.rating,
        )

        self.recompute_user_rating(rating.rated_user_id)
        self._notifications.notify(
            user_id=rating.rated_user_id,
            title="New rating",
            message=f"You received a {rating.rating}-star rating.",
            type=NotificationType.RATING,
            related_id=rating.swap_request_id,
        )
        return rating

    def get_ratings_for_user(
        self, user_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Rating]:
        """Ratings received by user_id, newest first."""
        return (
            self.db.query(Rating)
            .filter(Rating.rated_user_id == user_id)
            .order_by(Rating.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_ratings_for_user(self, user_id: UUID) -> int:
        return self.db.query(Rating).filter(Rating.rated_user_id == user_id).count()

    def get_ratings_for_request(self, swap_request_id: UUID) -> List[Rating]:
        return (
            self.db.query(Rating)
            .filter(Rating.swap_request_id == swap_request_id)
            .order_by(Rating.created_at.asc())
            .all()
        )

    def compute_user_rating(self, user_id: UUID) -> Optional[float]:
        """Mean of the latest rating per (rater, swap request); None when unrated."""
        ratings = (
            self.db.query(Rating)
            .filter(Rating.rated_user_id == user_id)
            .order_by(Rating.created_at.asc())
            .all()
        )
        latest: Dict[Tuple[UUID, UUID], int] = {}
        for r in ratings:
            # Ratings not tied to a swap each count on their own.
            key = (r.rater_user_id, r.swap_request_id or r.id)
            latest[key] = r.rating
        if not latest:
            return None
        return round(sum(latest.values()) / len(latest), 2)

    def recompute_user_rating(self, user_id: UUID) -> Optional[float]:
        """Store the aggregate on the profile. Failures are logged, not raised."""
        try:
            value = self.compute_user_rating(user_id)
            self._profiles.update_rating(user_id, value)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Failed to recompute rating for user %s: %s", user_id, e)
            return None
        return value
