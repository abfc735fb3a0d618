"""Profile model: per-user aggregate rating and swap counter."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Float, Integer, String, Uuid

from swapchat.db import Base
from swapchat.models.mixins import TimestampMixin


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, unique=True)
    display_name = Column(String(256), nullable=True)
    rating = Column(Float, nullable=True)
    total_swaps = Column(Integer, nullable=False, default=0)
