"""Fixtures for the change bus, feed and API client."""

import pytest
from fastapi.testclient import TestClient

from swapchat.adapters.blob_storage import LocalBlobStorage
from swapchat.core.app_state import AppState
from swapchat.db import get_db
from swapchat.realtime.bus import InMemoryChangeBus
from swapchat.realtime.feed import RealtimeMessageFeed


@pytest.fixture(scope="function")
def bus():
    return InMemoryChangeBus(queue_size=16)


@pytest.fixture(scope="function")
def feed(bus):
    """Feed with fast reconnects so drop/recover tests stay quick."""
    return RealtimeMessageFeed(bus, reconnect_attempts=3, reconnect_delay=0.01)


@pytest.fixture(scope="function")
def blob_storage(tmp_path):
    return LocalBlobStorage(
        str(tmp_path / "storage"), "http://testserver/storage", max_bytes=1024
    )


@pytest.fixture(scope="function")
def client(db, bus, blob_storage):
    """Client with db override, in-memory bus and local blob storage."""
    from swapchat.main import create_app

    app = create_app(testing=True, app_state=AppState(bus=bus, blob_storage=blob_storage))

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
