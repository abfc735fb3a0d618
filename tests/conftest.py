import asyncio
import os

os.environ["ENV"] = "test"

import pytest
from sqlalchemy.orm import sessionmaker

import swapchat.models  # noqa: F401
from swapchat.db import Base, build_engine

pytest_plugins = [
    "tests.fixtures.swap_fixtures",
    "tests.fixtures.app_fixtures",
]


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = build_engine(os.getenv("TEST_DATABASE_URL", "sqlite://"))
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def wait_until():
    """Poll a predicate while letting the event loop run feed tasks."""

    async def _wait_until(predicate, timeout: float = 2.0) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                return False
            await asyncio.sleep(0.01)
        return True

    return _wait_until
