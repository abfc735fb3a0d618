"""
Row change bus: publish/subscribe of JSON payloads on named channels.

This is the transport the realtime message feed is built on. A subscription
is an async iterator of payload dicts; a dropped transport surfaces as
TransportError from the iterator.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set
from uuid import UUID

from swapchat.exceptions import TransportError

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]


def message_channel(room_id: UUID | str) -> str:
    """Channel carrying message inserts for one chat room."""
    return f"chat_room:{room_id}:messages"


class BusSubscription(ABC):
    """Lazy, non-restartable sequence of payloads for one channel."""

    channel: str

    def __aiter__(self) -> "BusSubscription":
        return self

    @abstractmethod
    async def __anext__(self) -> Payload: ...

    @abstractmethod
    async def aclose(self) -> None:
        """Stop receiving and release the underlying connection. Idempotent."""
        ...

    def detach(self) -> None:
        """Stop receiving without awaiting. aclose() still releases the connection."""
        return None


class ChangeBus(ABC):
    """Contract for change buses. Implementations raise TransportError on I/O failure."""

    @abstractmethod
    async def publish(self, channel: str, payload: Payload) -> None: ...

    @abstractmethod
    async def subscribe(self, channel: str) -> BusSubscription: ...

    async def close(self) -> None:
        """Release connections. Override when the bus holds any."""
        return None


_CLOSED = object()


class _MemorySubscription(BusSubscription):
    def __init__(self, bus: "InMemoryChangeBus", channel: str, queue_size: int) -> None:
        self.channel = channel
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._error: Optional[TransportError] = None
        self._closed = False

    def offer(self, payload: Payload) -> None:
        if self._closed or self._error is not None:
            return
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Subscriber queue full on %s; dropping subscription", self.channel)
            self.fail(TransportError(f"Subscriber queue overflow on {self.channel}"))

    def fail(self, error: TransportError) -> None:
        """Terminate the subscription; the consumer sees error after draining."""
        if self._closed or self._error is not None:
            return
        self._error = error
        self._bus._detach(self)
        self._wake()

    def _wake(self) -> None:
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # consumer finds the error once the queue drains
            pass

    async def __anext__(self) -> Payload:
        while True:
            if self._queue.empty():
                if self._error is not None:
                    raise self._error
                if self._closed:
                    raise StopAsyncIteration
            item = await self._queue.get()
            if item is _CLOSED:
                continue
            return item

    def detach(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus._detach(self)
        self._wake()

    async def aclose(self) -> None:
        self.detach()


class InMemoryChangeBus(ChangeBus):
    """
    Process-local bus. Each subscriber owns a bounded queue; overflowing it
    terminates that subscription with TransportError so the consumer can
    reconcile from storage.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._subscribers: Dict[str, Set[_MemorySubscription]] = {}
        self.available = True

    async def publish(self, channel: str, payload: Payload) -> None:
        if not self.available:
            raise TransportError("Change bus unavailable")
        for sub in list(self._subscribers.get(channel, ())):
            sub.offer(dict(payload))

    async def subscribe(self, channel: str) -> BusSubscription:
        if not self.available:
            raise TransportError("Change bus unavailable")
        sub = _MemorySubscription(self, channel, self._queue_size)
        self._subscribers.setdefault(channel, set()).add(sub)
        return sub

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    def disconnect(self, channel: Optional[str] = None) -> None:
        """Drop every subscription (or those on one channel) as a network loss would."""
        channels = [channel] if channel is not None else list(self._subscribers)
        for name in channels:
            for sub in list(self._subscribers.get(name, ())):
                sub.fail(TransportError(f"Connection lost on {name}"))

    async def close(self) -> None:
        for subs in list(self._subscribers.values()):
            for sub in list(subs):
                await sub.aclose()
        self._subscribers.clear()

    def _detach(self, sub: _MemorySubscription) -> None:
        subs = self._subscribers.get(sub.channel)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._subscribers[sub.channel]
