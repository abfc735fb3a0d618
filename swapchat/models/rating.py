"""Rating model: one participant's post-swap rating of the other. Insert only."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
)

from swapchat.db import Base
from swapchat.models.mixins import utcnow


class Rating(Base):
    __tablename__ = "user_ratings"

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_user_ratings_range"),
        CheckConstraint(
            "rater_user_id <> rated_user_id", name="ck_user_ratings_not_self"
        ),
        Index("ix_user_ratings_rated_created", "rated_user_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    rater_user_id = Column(Uuid, nullable=False)
    rated_user_id = Column(Uuid, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    swap_request_id = Column(Uuid, ForeignKey("swap_requests.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
