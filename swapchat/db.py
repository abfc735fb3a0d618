"""Database engine, declarative base and session helpers."""

from __future__ import annotations

import contextlib
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from swapchat.config import get_settings

Base = declarative_base()


def build_engine(database_url: str, **overrides) -> Engine:
    """Create an engine; SQLite URLs get a shared in-process connection."""
    settings = get_settings()
    if database_url.startswith("sqlite"):
        kwargs = {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    else:
        kwargs = {
            "pool_size": settings.database_pool_size,
            "max_overflow": settings.database_max_overflow,
            "pool_pre_ping": True,
        }
    kwargs.update(overrides)
    return create_engine(database_url, **kwargs)


class DatabaseManager:
    """Lazily builds the engine and hands out sessions."""

    def __init__(self, database_url: Optional[str] = None) -> None:
        self._database_url = database_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            url = self._database_url or get_settings().database_url
            self._engine = build_engine(url)
            self._session_factory = sessionmaker(
                bind=self._engine, autoflush=False, expire_on_commit=False
            )
        return self._engine

    def session(self) -> Session:
        self.engine
        return self._session_factory()

    @contextlib.contextmanager
    def db_session(self) -> Iterator[Session]:
        db = self.session()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None


db_manager = DatabaseManager()


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a database session."""
    db = db_manager.session()
    try:
        yield db
    finally:
        db.close()
