"""
Chat session controller: one viewer's live conversation in one chat room.

Lifecycle: uninitialized -> resolving -> loading -> live -> closed, with
failed as the terminal state when resolution or the initial load fails.

Sent messages are not applied to the local view. They show up when the
feed echoes them back, which is also when the matching PendingSend turns
confirmed. Every operation that awaits checks the session generation
afterwards and drops its result if close() ran in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from swapchat.adapters.blob_storage import BlobStorage
from swapchat.config import Settings, get_settings
from swapchat.exceptions import (
    InvalidStateError,
    NotFoundError,
    NotParticipantError,
    TransportError,
    ValidationError,
)
from swapchat.models.chat_room import ChatRoom
from swapchat.realtime.feed import FeedState, FeedSubscription, RealtimeMessageFeed
from swapchat.realtime.view import MessageView
from swapchat.schemas.chat_room import ChatRoomRead
from swapchat.schemas.message import MessageRead, MessageStatus, MessageType
from swapchat.schemas.rating import RatingCreate, RatingRead
from swapchat.schemas.swap_request import SwapRequestBase, SwapRequestCreate
from swapchat.services.chat_room_service import ChatRoomService
from swapchat.services.message_service import MessageService
from swapchat.services.rating_service import RatingService
from swapchat.services.swap_request_service import SwapRequestService

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    LOADING = "loading"
    LIVE = "live"
    CLOSED = "closed"
    FAILED = "failed"


class PendingSendStatus(str, Enum):
    SENDING = "sending"
    FAILED = "failed"
    CONFIRMED = "confirmed"


@dataclass
class PendingSend:
    """Client-side record of an outgoing message, keyed by client_ref."""

    client_ref: str
    content: str
    message_type: MessageType = MessageType.TEXT
    image_url: Optional[str] = None
    status: PendingSendStatus = PendingSendStatus.SENDING
    message_id: Optional[UUID] = None
    error: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.status == PendingSendStatus.FAILED


class ChatSessionController:
    def __init__(
        self,
        db: Session,
        user_id: UUID,
        feed: RealtimeMessageFeed,
        blob_storage: Optional[BlobStorage] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self._feed = feed
        self._blob_storage = blob_storage
        self._send_timeout = (settings or get_settings()).send_timeout_seconds

        self._rooms = ChatRoomService(db)
        self._messages = MessageService(
            db,
            bus=feed.bus,
            chat_room_service=self._rooms,
            on_publish_failed=self._on_publish_failed,
        )
        self._ratings = RatingService(db)
        self._swap_requests = SwapRequestService(db)

        self._view = MessageView()
        self._pending: Dict[str, PendingSend] = {}
        self._room: Optional[ChatRoomRead] = None
        self._subscription: Optional[FeedSubscription] = None
        self._state = SessionState.UNINITIALIZED
        self._connection_state: Optional[FeedState] = None
        self._loading = False
        self._generation = 0

    # Read-only state for the presentation layer

    @property
    def messages(self) -> Tuple[MessageRead, ...]:
        return self._view.messages

    @property
    def room(self) -> Optional[ChatRoomRead]:
        return self._room

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connection_state(self) -> Optional[FeedState]:
        return self._connection_state

    @property
    def pending_sends(self) -> Tuple[PendingSend, ...]:
        """Sends not yet confirmed; confirmed entries are dropped."""
        return tuple(self._pending.values())

    @property
    def loading(self) -> bool:
        return self._loading

    def get_pending(self, client_ref: str) -> Optional[PendingSend]:
        return self._pending.get(client_ref)

    # Lifecycle

    async def start(
        self,
        swap_request_id: Optional[UUID] = None,
        counterparty_id: Optional[UUID] = None,
        placeholder_request: Optional[SwapRequestBase] = None,
    ) -> ChatRoomRead:
        """
        Resolve the room, subscribe to its feed, load history and go live.

        Pass exactly one of swap_request_id or counterparty_id. With
        counterparty_id, placeholder_request makes the session create a
        pending swap request first when the two users have no room yet, so
        the new room is linked to it.
        That request is committed before the feed subscription, so it stays
        when start() fails later; starting again with the same counterparty
        finds its room and reuses it instead of creating another.

        Raises:
            InvalidStateError: start() was already called.
            ValidationError, NotFoundError, TransportError: resolution or
                subscription failed; the session is then failed.
        """
        if self._state != SessionState.UNINITIALIZED:
            raise InvalidStateError(f"Chat session already {self._state.value}")
        if (swap_request_id is None) == (counterparty_id is None):
            raise ValidationError("Provide exactly one of swap_request_id or counterparty_id")

        generation = self._generation
        self._loading = True
        self._state = SessionState.RESOLVING
        subscription: Optional[FeedSubscription] = None
        try:
            room = self._resolve_room(swap_request_id, counterparty_id, placeholder_request)
            self._room = ChatRoomRead.model_validate(room)

            self._state = SessionState.LOADING
            subscription = await self._feed.subscribe(
                room.id,
                self._on_live_message,
                on_state_change=self._on_feed_state,
                on_reconnect=self._on_feed_reconnect,
            )
            if self._is_stale(generation):
                subscription.close()
                raise InvalidStateError("Chat session closed while starting")
            self._subscription = subscription
            self._connection_state = FeedState.CONNECTED

            # Subscribed before loading, so anything appended in between
            # arrives on the feed and merge() skips it here.
            self._apply_history(self._messages.list_ordered(room.id))
            self._state = SessionState.LIVE
        except Exception:
            if subscription is not None:
                subscription.close()
            self._subscription = None
            if not self._is_stale(generation):
                self._state = SessionState.FAILED
            logger.exception("Chat session for user %s failed to start", self.user_id)
            raise
        finally:
            self._loading = False

        logger.info(
            "Chat session live in room %s for user %s (%d messages)",
            self._room.id,
            self.user_id,
            len(self._view),
        )
        return self._room

    def close(self) -> None:
        """Unsubscribe now; later operations raise InvalidStateError. Idempotent."""
        if self._state in (SessionState.CLOSED, SessionState.FAILED):
            return
        self._generation += 1
        self._state = SessionState.CLOSED
        self._connection_state = FeedState.CLOSED
        if self._subscription is not None:
            self._feed.unsubscribe(self._subscription)
        logger.debug("Chat session for user %s closed", self.user_id)

    async def aclose(self) -> None:
        """close() and wait for the feed subscription to be released."""
        self.close()
        if self._subscription is not None:
            await self._subscription.wait_closed()
            self._subscription = None

    # Operations

    async def send_message(self, text: str, client_ref: Optional[str] = None) -> PendingSend:
        """
        Append a text message. The returned PendingSend is failed (and
        retryable) on transport errors or timeout; validation errors raise.
        """
        self._ensure_live()
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message content must not be empty")
        return await self._send(text, MessageType.TEXT, None, client_ref)

    async def retry_send(self, client_ref: str) -> PendingSend:
        """Resend a failed entry. Confirmed sends are gone from pending_sends."""
        self._ensure_live()
        pending = self._pending.get(client_ref)
        if pending is None:
            raise NotFoundError(f"No pending send with client_ref {client_ref}")
        if not pending.retryable:
            return pending
        return await self._send(
            pending.content, pending.message_type, pending.image_url, client_ref
        )

    async def send_image(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        caption: str = "",
        client_ref: Optional[str] = None,
    ) -> Optional[PendingSend]:
        """
        Upload an image and append a message referencing it.

        Returns None when the session closed during the upload.
        """
        self._ensure_live()
        if self._blob_storage is None:
            raise InvalidStateError("No blob storage configured for this session")
        generation = self._generation
        url = await self._blob_storage.upload(data, filename, content_type)
        if self._is_stale(generation):
            logger.debug("Discarding upload %s; session closed", url)
            return None
        return await self._send(caption, MessageType.IMAGE, url, client_ref)

    async def submit_rating(
        self,
        rating: int,
        comment: Optional[str] = None,
        rated_user_id: Optional[UUID] = None,
    ) -> RatingRead:
        """Rate the counterparty (by default) for this room's swap request."""
        self._ensure_live()
        data = RatingCreate(
            rater_user_id=self.user_id,
            rated_user_id=rated_user_id or self._room.counterparty_of(self.user_id),
            rating=rating,
            comment=comment,
            swap_request_id=self._room.swap_request_id,
        )
        return RatingRead.model_validate(self._ratings.submit_rating(data))

    async def refresh(self) -> int:
        """Re-read the room history and merge it; returns how many messages were new."""
        self._ensure_live()
        return self._apply_history(self._messages.list_ordered(self._room.id))

    def mark_read(self) -> int:
        """Mark the counterparty's messages read in this viewer's list."""
        self._ensure_live()
        return self._view.set_status(
            MessageStatus.READ, lambda m: m.sender_id != self.user_id
        )

    # Internals

    def _resolve_room(
        self,
        swap_request_id: Optional[UUID],
        counterparty_id: Optional[UUID],
        placeholder_request: Optional[SwapRequestBase],
    ) -> ChatRoom:
        if swap_request_id is not None:
            room = self._rooms.resolve_for_request(swap_request_id)
        elif placeholder_request is not None and not self._has_room_with(counterparty_id):
            request = self._swap_requests.create_swap_request(
                SwapRequestCreate(
                    requester_id=self.user_id,
                    owner_id=counterparty_id,
                    **placeholder_request.model_dump(),
                )
            )
            room = self._rooms.resolve_for_request(request.id)
        else:
            room = self._rooms.resolve_for_pair(self.user_id, counterparty_id)
        if not self._rooms.is_participant(room, self.user_id):
            raise NotParticipantError(
                f"User {self.user_id} is not a participant of chat room {room.id}"
            )
        return room

    def _has_room_with(self, counterparty_id: UUID) -> bool:
        return bool(self._rooms.get_rooms_between(self.user_id, counterparty_id))

    async def _send(
        self,
        content: str,
        message_type: MessageType,
        image_url: Optional[str],
        client_ref: Optional[str],
    ) -> PendingSend:
        client_ref = client_ref or uuid.uuid4().hex
        pending = self._pending.get(client_ref)
        if pending is None:
            pending = PendingSend(
                client_ref=client_ref,
                content=content,
                message_type=message_type,
                image_url=image_url,
            )
            self._pending[client_ref] = pending
        pending.status = PendingSendStatus.SENDING
        pending.error = None

        generation = self._generation
        try:
            message = await asyncio.wait_for(
                self._messages.append(
                    self._room.id,
                    self.user_id,
                    content,
                    message_type=message_type,
                    image_url=image_url,
                    client_ref=client_ref,
                ),
                timeout=self._send_timeout,
            )
        except (TransportError, asyncio.TimeoutError) as e:
            if not self._is_stale(generation):
                pending.status = PendingSendStatus.FAILED
                pending.error = str(e) or type(e).__name__
                logger.warning("Send %s in room %s failed: %r", client_ref, self._room.id, e)
            return pending
        except Exception:
            self._pending.pop(client_ref, None)
            raise

        if self._is_stale(generation):
            return pending
        pending.message_id = message.id
        if message.id in self._view:
            pending.status = PendingSendStatus.CONFIRMED
            self._pending.pop(client_ref, None)
        return pending

    def _apply_history(self, history: Iterable[MessageRead]) -> int:
        history = list(history)
        added = self._view.merge(history)
        for message in history:
            self._confirm(message)
        return added

    def _confirm(self, message: MessageRead) -> None:
        if message.sender_id != self.user_id or not message.client_ref:
            return
        pending = self._pending.pop(message.client_ref, None)
        if pending is not None:
            pending.status = PendingSendStatus.CONFIRMED
            pending.message_id = message.id
            pending.error = None

    def _on_live_message(self, message: MessageRead) -> None:
        if self._state != SessionState.LIVE and self._state != SessionState.LOADING:
            return
        if message.sender_id != self.user_id:
            message = message.model_copy(update={"status": MessageStatus.DELIVERED})
        self._view.add(message)
        self._confirm(message)

    def _on_feed_state(self, state: FeedState, error: Optional[Exception]) -> None:
        if self._state == SessionState.CLOSED:
            return
        self._connection_state = state
        if state == FeedState.FAILED:
            logger.warning(
                "Live feed for room %s gave up reconnecting: %s",
                self._room.id if self._room else None,
                error,
            )

    async def _on_feed_reconnect(self) -> None:
        # Also runs on a resync request after a failed publish.
        if self._state != SessionState.LIVE:
            return
        added = await self.refresh()
        if added:
            logger.info("Recovered %d messages in room %s from history", added, self._room.id)

    def _on_publish_failed(self, message: MessageRead) -> None:
        self._feed.resync(message.chat_room_id)

    def _ensure_live(self) -> None:
        if self._state != SessionState.LIVE:
            raise InvalidStateError(f"Chat session is {self._state.value}")

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation
