"""Change bus over Redis pub/sub (redis.asyncio)."""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from swapchat.exceptions import TransportError
from swapchat.realtime.bus import BusSubscription, ChangeBus, Payload

logger = logging.getLogger(__name__)

POLL_TIMEOUT_SECONDS = 1.0


class _RedisSubscription(BusSubscription):
    def __init__(self, pubsub, channel: str, redis_channel: str) -> None:
        self.channel = channel
        self._pubsub = pubsub
        self._redis_channel = redis_channel
        self._stopped = False
        self._closed = False

    async def __anext__(self) -> Payload:
        while not self._stopped:
            try:
                msg = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=POLL_TIMEOUT_SECONDS
                )
            except RedisError as e:
                raise TransportError(f"Redis subscription on {self.channel} failed: {e}") from e
            if msg is None:
                continue
            try:
                return json.loads(msg["data"])
            except (TypeError, ValueError) as e:
                logger.warning("Dropping non-JSON payload on %s: %s", self.channel, e)
        raise StopAsyncIteration

    def detach(self) -> None:
        self._stopped = True

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stopped = True
        try:
            await self._pubsub.unsubscribe(self._redis_channel)
            await self._pubsub.aclose()
        except RedisError as e:
            logger.warning("Error closing Redis subscription on %s: %s", self.channel, e)


class RedisChangeBus(ChangeBus):
    """Pub/sub bus; channel names are prefixed with the configured namespace."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        namespace: str = "swapchat",
        client: Optional[redis.Redis] = None,
    ) -> None:
        self.url = url
        self.namespace = namespace
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        try:
            await self._client.ping()
        except RedisError as e:
            raise TransportError(f"Failed to connect to Redis at {self.url}: {e}") from e
        logger.info("Connected to Redis change bus at %s", self.url)

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    def _name(self, channel: str) -> str:
        return f"{self.namespace}:{channel}"

    async def publish(self, channel: str, payload: Payload) -> None:
        try:
            await self.client.publish(self._name(channel), json.dumps(payload))
        except RedisError as e:
            raise TransportError(f"Publish to {channel} failed: {e}") from e

    async def subscribe(self, channel: str) -> BusSubscription:
        name = self._name(channel)
        pubsub = self.client.pubsub()
        try:
            await pubsub.subscribe(name)
        except RedisError as e:
            raise TransportError(f"Subscribe to {channel} failed: {e}") from e
        return _RedisSubscription(pubsub, channel, name)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from Redis change bus")
