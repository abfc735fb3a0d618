"""
Process-scoped connection handle: change bus, live feed and blob storage.

Created once per application (see swapchat.main) and passed to whatever
needs it; there is no module-level instance.
"""

from __future__ import annotations

import logging
from typing import Optional

from swapchat.adapters.blob_storage import BlobStorage, LocalBlobStorage
from swapchat.config import Settings
from swapchat.realtime.bus import ChangeBus, InMemoryChangeBus
from swapchat.realtime.feed import RealtimeMessageFeed
from swapchat.realtime.redis_bus import RedisChangeBus

logger = logging.getLogger(__name__)


class AppState:
    def __init__(
        self,
        bus: Optional[ChangeBus] = None,
        blob_storage: Optional[BlobStorage] = None,
    ) -> None:
        self._bus = bus
        self._blob_storage = blob_storage
        self._feed: Optional[RealtimeMessageFeed] = None

    @property
    def bus(self) -> ChangeBus:
        if self._bus is None:
            raise RuntimeError("AppState not initialised. Call init() first.")
        return self._bus

    @property
    def feed(self) -> RealtimeMessageFeed:
        if self._feed is None:
            raise RuntimeError("AppState not initialised. Call init() first.")
        return self._feed

    @property
    def blob_storage(self) -> BlobStorage:
        if self._blob_storage is None:
            raise RuntimeError("AppState not initialised. Call init() first.")
        return self._blob_storage

    @property
    def initialised(self) -> bool:
        return self._feed is not None

    async def init(self, settings: Settings) -> None:
        """Establish the bus connection and build the feed."""
        if self._bus is None:
            if settings.realtime_backend == "redis":
                bus = RedisChangeBus(settings.redis_url, namespace=settings.redis_namespace)
                await bus.connect()
                self._bus = bus
            else:
                self._bus = InMemoryChangeBus(queue_size=settings.feed_queue_size)
        if self._blob_storage is None:
            self._blob_storage = LocalBlobStorage(
                settings.storage_dir,
                settings.storage_public_base_url,
                max_bytes=settings.max_image_bytes,
            )
        self._feed = RealtimeMessageFeed(
            self._bus,
            reconnect_attempts=settings.feed_reconnect_attempts,
            reconnect_delay=settings.feed_reconnect_delay_seconds,
        )
        logger.info("App state initialised (%s bus)", type(self._bus).__name__)

    async def teardown(self) -> None:
        """Close every live subscription, then the bus."""
        if self._feed is not None:
            self._feed.close_all()
            self._feed = None
        if self._bus is not None:
            await self._bus.close()
        logger.info("App state torn down")
