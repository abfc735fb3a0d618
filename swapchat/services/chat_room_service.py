"""
Chat room resolution: find-or-create exactly one room per swap request or per
counterparty pair.

Creation relies on the UNIQUE constraints on chat_rooms.swap_request_id and
chat_rooms.pair_key. A creator that loses the insert race rolls back and
adopts the row the winner wrote.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from swapchat.core.room_key import build_pair_key
from swapchat.exceptions import NotFoundError, ValidationError
from swapchat.models.chat_room import ChatRoom
from swapchat.models.mixins import utcnow
from swapchat.models.swap_request import SwapRequest

logger = logging.getLogger(__name__)


class ChatRoomService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_chat_room(self, room_id: UUID) -> Optional[ChatRoom]:
        return self.db.query(ChatRoom).filter(ChatRoom.id == room_id).first()

    def get_room_for_request(self, swap_request_id: UUID) -> Optional[ChatRoom]:
        return (
            self.db.query(ChatRoom)
            .filter(ChatRoom.swap_request_id == swap_request_id)
            .first()
        )

    def get_room_for_pair_key(self, pair_key: str) -> Optional[ChatRoom]:
        return self.db.query(ChatRoom).filter(ChatRoom.pair_key == pair_key).first()

    def get_rooms_between(self, user_a: UUID, user_b: UUID) -> List[ChatRoom]:
        """All rooms for the unordered pair, most recently active first."""
        return (
            self.db.query(ChatRoom)
            .filter(
                or_(
                    and_(ChatRoom.participant_1 == user_a, ChatRoom.participant_2 == user_b),
                    and_(ChatRoom.participant_1 == user_b, ChatRoom.participant_2 == user_a),
                )
            )
            .order_by(ChatRoom.updated_at.desc())
            .all()
        )

    def get_rooms_for_user_query(self, user_id: UUID) -> Query[ChatRoom]:
        return (
            self.db.query(ChatRoom)
            .filter(or_(ChatRoom.participant_1 == user_id, ChatRoom.participant_2 == user_id))
            .order_by(ChatRoom.updated_at.desc())
        )

    def get_rooms_for_user(self, user_id: UUID, skip: int = 0, limit: int = 100) -> List[ChatRoom]:
        return self.get_rooms_for_user_query(user_id).offset(skip).limit(limit).all()

    @staticmethod
    def is_participant(room: ChatRoom, user_id: UUID) -> bool:
        return user_id in (room.participant_1, room.participant_2)

    def resolve_for_request(self, swap_request_id: UUID) -> ChatRoom:
        """
        Return the room linked to swap_request_id, creating it on first contact.

        Raises:
            NotFoundError: the swap request does not exist.
        """
        room = self.get_room_for_request(swap_request_id)
        if room is not None:
            return room

        request = (
            self.db.query(SwapRequest).filter(SwapRequest.id == swap_request_id).first()
        )
        if request is None:
            raise NotFoundError(f"Swap request {swap_request_id} not found")

        room = ChatRoom(
            participant_1=request.requester_id,
            participant_2=request.owner_id,
            swap_request_id=swap_request_id,
        )
        return self._insert_or_adopt(
            room, lambda: self.get_room_for_request(swap_request_id)
        )

    def resolve_for_pair(self, user_a: UUID, user_b: UUID) -> ChatRoom:
        """
        Return the room for the unordered pair {user_a, user_b}.

        Prefers the pair-keyed room; otherwise reuses the most recently active
        request-linked room between the two; otherwise creates a pair-keyed room.

        Raises:
            ValidationError: user_a and user_b are the same user.
        """
        if user_a == user_b:
            raise ValidationError("Cannot open a chat with yourself")

        pair_key = build_pair_key(user_a, user_b)
        room = self.get_room_for_pair_key(pair_key)
        if room is not None:
            return room
        existing = self.get_rooms_between(user_a, user_b)
        if existing:
            return existing[0]

        room = ChatRoom(participant_1=user_a, participant_2=user_b, pair_key=pair_key)
        return self._insert_or_adopt(room, lambda: self.get_room_for_pair_key(pair_key))

    def touch(self, room_id: UUID) -> None:
        """Bump updated_at so room lists sort by latest activity."""
        self.db.query(ChatRoom).filter(ChatRoom.id == room_id).update(
            {ChatRoom.updated_at: utcnow()}, synchronize_session=False
        )

    def _insert_or_adopt(
        self, room: ChatRoom, lookup: Callable[[], Optional[ChatRoom]]
    ) -> ChatRoom:
        self.db.add(room)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = lookup()
            if existing is None:
                raise
            logger.info("Chat room created concurrently; adopting %s", existing.id)
            return existing
        self.db.refresh(room)
        logger.info(
            "Chat room %s created for %s and %s",
            room.id,
            room.participant_1,
            room.participant_2,
        )
        return room
