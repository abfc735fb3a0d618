"""SwapItem model: the slice of a catalog listing needed to validate swap requests."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Text, Uuid

from swapchat.db import Base
from swapchat.models.mixins import TimestampMixin

ITEM_STATUS_AVAILABLE = "available"
ITEM_STATUS_SWAPPED = "swapped"


class SwapItem(Base, TimestampMixin):
    """A listed item. Owned by user_id; only 'available' items can be swapped."""

    __tablename__ = "swap_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default=ITEM_STATUS_AVAILABLE)
