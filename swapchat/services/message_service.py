"""
Message store: append-only, room-scoped message log.

append() persists first and then publishes the row on the room's change
channel. The publish is best-effort: when it fails the message stays stored,
and on_publish_failed is called so the caller can ask live subscribers to
reconcile through list_ordered().
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from swapchat.exceptions import (
    NotFoundError,
    NotParticipantError,
    TransportError,
    ValidationError,
)
from swapchat.models.message import Message
from swapchat.realtime.bus import ChangeBus, message_channel
from swapchat.schemas.message import (
    IMAGE_PLACEHOLDER_CONTENT,
    MessageRead,
    MessageStatus,
    MessageType,
)
from swapchat.schemas.notification import NotificationType
from swapchat.services.chat_room_service import ChatRoomService
from swapchat.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

NOTIFICATION_PREVIEW_CHARS = 80


class MessageService:
    """Create and read messages. No update/delete (immutable)."""

    def __init__(
        self,
        db: Session,
        bus: Optional[ChangeBus] = None,
        chat_room_service: Optional[ChatRoomService] = None,
        notification_service: Optional[NotificationService] = None,
        on_publish_failed: Optional[Callable[[MessageRead], None]] = None,
    ) -> None:
        self.db = db
        self._bus = bus
        self._on_publish_failed = on_publish_failed
        self._rooms = chat_room_service or ChatRoomService(db)
        self._notifications = notification_service or NotificationService(db)

    async def append(
        self,
        room_id: UUID,
        sender_id: UUID,
        content: str,
        message_type: MessageType | str = MessageType.TEXT,
        image_url: Optional[str] = None,
        client_ref: Optional[str] = None,
    ) -> MessageRead:
        """
        Append a message to a room and publish it to live subscribers.

        A repeated client_ref from the same sender returns the message already
        stored for it instead of writing a second one.

        Raises:
            ValidationError: empty text, missing/unexpected image_url, or the
                sender is not a participant of the room.
            NotFoundError: the room does not exist.
            TransportError: the message could not be persisted.
        """
        try:
            message_type = MessageType(message_type)
        except ValueError as e:
            raise ValidationError(f"Unknown message type: {message_type!r}") from e
        content = (content or "").strip()
        if message_type == MessageType.IMAGE:
            if not image_url:
                raise ValidationError("Image messages require an image_url")
            content = content or IMAGE_PLACEHOLDER_CONTENT
        else:
            if image_url:
                raise ValidationError("Only image messages may carry an image_url")
            if not content:
                raise ValidationError("Message content must not be empty")

        room = self._rooms.get_chat_room(room_id)
        if room is None:
            raise NotFoundError(f"Chat room {room_id} not found")
        if not self._rooms.is_participant(room, sender_id):
            raise NotParticipantError(
                f"User {sender_id} is not a participant of chat room {room_id}"
            )

        if client_ref:
            existing = self._get_by_client_ref(room_id, sender_id, client_ref)
            if existing is not None:
                return MessageRead.model_validate(existing)

        message = Message(
            chat_room_id=room_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type.value,
            image_url=image_url,
            status=MessageStatus.SENT.value,
            client_ref=client_ref,
        )
        try:
            self.db.add(message)
            self._rooms.touch(room_id)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            existing = (
                self._get_by_client_ref(room_id, sender_id, client_ref)
                if client_ref
                else None
            )
            if existing is None:
                raise TransportError(f"Failed to store message: {e}") from e
            return MessageRead.model_validate(existing)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransportError(f"Failed to store message: {e}") from e
        self.db.refresh(message)

        result = MessageRead.model_validate(message)
        await self._publish(result)
        self._notify_counterparty(room, result)
        return result

    def list_ordered(
        self, room_id: UUID, since: Optional[datetime] = None
    ) -> List[MessageRead]:
        """
        Room messages, oldest first with ties broken by id.

        With since, only messages created at or after it.
        """
        return [
            MessageRead.model_validate(m)
            for m in self.get_messages_query(room_id, since=since).all()
        ]

    def get_messages_query(
        self, room_id: UUID, since: Optional[datetime] = None
    ) -> Query[Message]:
        query = self.db.query(Message).filter(Message.chat_room_id == room_id)
        if since is not None:
            query = query.filter(Message.created_at >= since)
        return query.order_by(Message.created_at.asc(), Message.id.asc())

    def get_message_count(self, room_id: UUID) -> int:
        return self.db.query(Message).filter(Message.chat_room_id == room_id).count()

    def _get_by_client_ref(
        self, room_id: UUID, sender_id: UUID, client_ref: str
    ) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.chat_room_id == room_id,
                Message.sender_id == sender_id,
                Message.client_ref == client_ref,
            )
            .first()
        )

    async def _publish(self, message: MessageRead) -> None:
        if self._bus is None:
            return
        try:
            await self._bus.publish(
                message_channel(message.chat_room_id), message.model_dump(mode="json")
            )
        except TransportError as e:
            logger.warning(
                "Message %s stored but not published to room %s: %s",
                message.id,
                message.chat_room_id,
                e,
            )
            if self._on_publish_failed is not None:
                self._on_publish_failed(message)

    def _notify_counterparty(self, room, message: MessageRead) -> None:
        recipient = (
            room.participant_2
            if message.sender_id == room.participant_1
            else room.participant_1
        )
        preview = message.content
        if len(preview) > NOTIFICATION_PREVIEW_CHARS:
            preview = preview[: NOTIFICATION_PREVIEW_CHARS - 3] + "..."
        self._notifications.notify(
            user_id=recipient,
            title="New message",
            message=preview,
            type=NotificationType.MESSAGE,
            related_id=room.id,
        )
