"""
SwapRequest model: a proposal to exchange one listed item for another.

Rows are never deleted; status only moves from pending to a terminal state.
"""

from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import relationship

from swapchat.db import Base
from swapchat.models.mixins import TimestampMixin


class SwapRequest(Base, TimestampMixin):
    __tablename__ = "swap_requests"

    __table_args__ = (
        CheckConstraint("requester_id <> owner_id", name="ck_swap_requests_not_self"),
        Index("ix_swap_requests_owner_created", "owner_id", "created_at"),
        Index("ix_swap_requests_requester_created", "requester_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    requester_id = Column(Uuid, nullable=False)
    owner_id = Column(Uuid, nullable=False)
    offered_item_id = Column(Uuid, ForeignKey("swap_items.id"), nullable=False)
    requested_item_id = Column(Uuid, ForeignKey("swap_items.id"), nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="pending")

    chat_room = relationship("ChatRoom", back_populates="swap_request", uselist=False)
