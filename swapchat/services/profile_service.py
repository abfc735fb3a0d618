"""Profile aggregates: rating and completed swap count."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from swapchat.models.profile import Profile


class ProfileService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_profile(self, user_id: UUID) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.user_id == user_id).first()

    def get_or_create_profile(self, user_id: UUID) -> Profile:
        profile = self.get_profile(user_id)
        if profile is not None:
            return profile
        profile = Profile(user_id=user_id, total_swaps=0)
        self.db.add(profile)
        self.db.flush()
        return profile

    def update_rating(self, user_id: UUID, rating: Optional[float]) -> Profile:
        profile = self.get_or_create_profile(user_id)
        profile.rating = rating
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def increment_total_swaps(self, *user_ids: UUID) -> None:
        for user_id in user_ids:
            profile = self.get_or_create_profile(user_id)
            profile.total_swaps = (profile.total_swaps or 0) + 1
        self.db.commit()
