"""
Realtime message feed: room-scoped delivery of newly created messages.

A FeedSubscription pumps the room's bus channel into the consumer's
on_message callback. Every payload is validated into MessageRead before
delivery, and each message id is delivered at most once per subscription.
Transport loss moves the subscription to DISCONNECTED; it then re-subscribes
and, once connected again, calls on_reconnect so the consumer can re-read
history and fill the gap. RealtimeMessageFeed.resync() runs the same
callback for a room whose publish failed while its subscriptions stayed up.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Set, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from swapchat.exceptions import TransportError
from swapchat.realtime.bus import BusSubscription, ChangeBus, message_channel
from swapchat.schemas.message import MessageRead

logger = logging.getLogger(__name__)

DEFAULT_SEEN_LIMIT = 1024

MaybeAwaitable = Union[None, Awaitable[None]]
MessageCallback = Callable[[MessageRead], MaybeAwaitable]
StateCallback = Callable[["FeedState", Optional[Exception]], MaybeAwaitable]
ReconnectCallback = Callable[[], MaybeAwaitable]


class FeedState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


async def _invoke(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class FeedSubscription:
    """Handle returned by RealtimeMessageFeed.subscribe."""

    def __init__(
        self,
        feed: "RealtimeMessageFeed",
        room_id: UUID,
        bus_subscription: BusSubscription,
        on_message: MessageCallback,
        on_state_change: Optional[StateCallback] = None,
        on_reconnect: Optional[ReconnectCallback] = None,
    ) -> None:
        self.room_id = room_id
        self._feed = feed
        self._bus_sub: Optional[BusSubscription] = bus_subscription
        self._on_message = on_message
        self._on_state_change = on_state_change
        self._on_reconnect = on_reconnect
        # Recently delivered ids; older ones are left to the consumer's view.
        self._seen: Set[UUID] = set()
        self._seen_order: Deque[UUID] = deque()
        self._state = FeedState.CONNECTED
        self._closed = False
        self._task: Optional[asyncio.Task] = None
        self._release_task: Optional[asyncio.Task] = None
        self._resync_tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"feed:{self.room_id}"
        )

    def close(self) -> None:
        """Stop delivery now and release the bus subscription. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._state = FeedState.CLOSED
        self._feed._forget(self)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        for task in self._resync_tasks:
            task.cancel()
        if self._bus_sub is not None:
            self._bus_sub.detach()
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._release_task = loop.create_task(self._release())
        logger.debug("Feed subscription for room %s closed", self.room_id)

    def request_resync(self) -> None:
        """Run on_reconnect in the background so the consumer re-reads history."""
        if self._closed or self._on_reconnect is None:
            return
        task = asyncio.get_running_loop().create_task(self._resync())
        self._resync_tasks.add(task)
        task.add_done_callback(self._resync_tasks.discard)

    async def _resync(self) -> None:
        try:
            await _invoke(self._on_reconnect)
        except Exception:
            logger.exception("Resync callback failed for room %s", self.room_id)

    async def wait_closed(self) -> None:
        """Await the pump and the bus release after close()."""
        for task in (self._task, self._release_task):
            if task is None:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _release(self) -> None:
        sub, self._bus_sub = self._bus_sub, None
        if sub is not None:
            await sub.aclose()

    async def _set_state(self, state: FeedState, error: Optional[Exception] = None) -> None:
        self._state = state
        try:
            await _invoke(self._on_state_change, state, error)
        except Exception:
            logger.exception("Feed state callback failed for room %s", self.room_id)

    async def _run(self) -> None:
        while not self._closed:
            sub = self._bus_sub
            if sub is None:
                return
            try:
                async for payload in sub:
                    if self._closed:
                        return
                    await self._dispatch(payload)
                if self._closed:
                    return
                raise TransportError(f"Subscription for room {self.room_id} ended")
            except TransportError as e:
                if self._closed:
                    return
                logger.warning("Feed for room %s disconnected: %s", self.room_id, e)
                await self._set_state(FeedState.DISCONNECTED, e)
                await self._release()
                if not await self._reconnect():
                    if not self._closed:
                        await self._set_state(FeedState.FAILED, e)
                    return
                await self._set_state(FeedState.CONNECTED)
                try:
                    await _invoke(self._on_reconnect)
                except Exception:
                    logger.exception("Reconnect callback failed for room %s", self.room_id)

    async def _reconnect(self) -> bool:
        attempts = self._feed.reconnect_attempts
        for attempt in range(1, attempts + 1):
            await asyncio.sleep(self._feed.reconnect_delay)
            if self._closed:
                return False
            try:
                sub = await self._feed.bus.subscribe(message_channel(self.room_id))
            except TransportError as e:
                logger.warning(
                    "Resubscribe %d/%d for room %s failed: %s",
                    attempt,
                    attempts,
                    self.room_id,
                    e,
                )
                continue
            if self._closed:
                await sub.aclose()
                return False
            self._bus_sub = sub
            logger.info("Feed for room %s reconnected", self.room_id)
            return True
        return False

    async def _dispatch(self, payload: Any) -> None:
        try:
            message = MessageRead.model_validate(payload)
        except PydanticValidationError as e:
            logger.warning("Dropping malformed message on room %s: %s", self.room_id, e)
            return
        if message.chat_room_id != self.room_id:
            return
        if message.id in self._seen:
            logger.debug("Message %s already delivered, skipping", message.id)
            return
        self._remember(message.id)
        try:
            await _invoke(self._on_message, message)
        except Exception:
            logger.exception(
                "Message callback failed for %s on room %s", message.id, self.room_id
            )

    def _remember(self, message_id: UUID) -> None:
        self._seen.add(message_id)
        self._seen_order.append(message_id)
        while len(self._seen_order) > self._feed.seen_limit:
            self._seen.discard(self._seen_order.popleft())


class RealtimeMessageFeed:
    """Subscribes consumers to message inserts for a room."""

    def __init__(
        self,
        bus: ChangeBus,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        seen_limit: int = DEFAULT_SEEN_LIMIT,
    ) -> None:
        self.bus = bus
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.seen_limit = seen_limit
        self._subscriptions: Set[FeedSubscription] = set()

    async def subscribe(
        self,
        room_id: UUID,
        on_message: MessageCallback,
        on_state_change: Optional[StateCallback] = None,
        on_reconnect: Optional[ReconnectCallback] = None,
    ) -> FeedSubscription:
        """
        Start delivering messages appended to room_id from now on.

        Raises:
            TransportError: the bus subscription could not be established.
        """
        bus_sub = await self.bus.subscribe(message_channel(room_id))
        handle = FeedSubscription(
            self,
            room_id,
            bus_sub,
            on_message,
            on_state_change=on_state_change,
            on_reconnect=on_reconnect,
        )
        self._subscriptions.add(handle)
        handle.start()
        logger.debug("Feed subscription opened for room %s", room_id)
        return handle

    def unsubscribe(self, handle: FeedSubscription) -> None:
        handle.close()

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    def resync(self, room_id: UUID) -> int:
        """
        Ask every open subscription on room_id to re-read history.

        Used when a message was stored but its publish failed, so live
        subscribers would otherwise never see it. Returns how many were asked.
        """
        handles = [h for h in self._subscriptions if h.room_id == room_id and not h.closed]
        for handle in handles:
            handle.request_resync()
        if handles:
            logger.info("Resync requested for %d subscriptions on room %s", len(handles), room_id)
        return len(handles)

    def close_all(self) -> None:
        for handle in list(self._subscriptions):
            handle.close()

    def _forget(self, handle: FeedSubscription) -> None:
        self._subscriptions.discard(handle)
