"""Async SQLAlchemy engine and session management.

The store handle is an explicitly constructed :class:`Database` that the
application factory attaches to ``app.state.database``. Request handlers get
sessions through the :func:`get_session` dependency.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from learnhub.db.base import Base

if TYPE_CHECKING:
    from learnhub.config import Settings


SQLITE_BUSY_TIMEOUT_MS = 5000


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock up front.

    SQLite ignores ``SELECT ... FOR UPDATE``; ``BEGIN IMMEDIATE`` gives the
    same read-modify-write guarantee for the stats row. Other writers wait
    up to the busy timeout instead of failing.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:  # noqa: ANN401
        # Hand transaction control to the "begin" hook below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:  # noqa: ANN401
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns one async engine and its session factory."""

    def __init__(self, url: str, **engine_options: Any) -> None:  # noqa: ANN401
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_options)
        if self.engine.dialect.name == "sqlite":
            _serialize_sqlite_writers(self.engine)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Build a database with pooling suited to the configured backend."""
        options: dict[str, Any] = {"echo": False}
        if not settings.database_url.startswith("sqlite"):
            options.update(pool_size=20, max_overflow=10, pool_pre_ping=True)
        return cls(settings.database_url, **options)

    async def create_all(self) -> None:
        """Create every table from ORM metadata."""
        # Registers the mapped classes on Base.metadata
        import learnhub.db.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        """Drop every table known to the ORM metadata."""
        import learnhub.db.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session; it is closed (and any open transaction rolled back) on exit."""
        async with self.session_factory() as session:
            yield session

    async def dispose(self) -> None:
        """Dispose of the engine and its connection pool."""
        await self.engine.dispose()


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Scope a unit of work: commit on success, roll back and re-raise on failure."""
    try:
        yield session
    except BaseException:
        await session.rollback()
        raise
    await session.commit()


def get_database(request: Request) -> Database:
    """Return the database attached to the running application."""
    database: Database | None = getattr(request.app.state, "database", None)
    if database is None:
        msg = "Database not initialized. Pass one to create_app()."
        raise RuntimeError(msg)
    return database


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with get_database(request).session() as session:
        yield session
