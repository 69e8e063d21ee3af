"""Engine and session lifecycle for the stats database."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Self

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stats_shared.config.database import DatabaseSettings
from stats_shared.db.base import Base


class DatabaseManager:
    """Owns the async engine; hands out one transaction-scoped session per unit of work.

    Usage:
        db = DatabaseManager.from_env()
        await db.ensure_schema()

        async with db.session() as session:
            result = await sync_service.sync_recent_activity(user_id, session)

        await db.dispose()
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        options: dict[str, Any] = {"echo": settings.echo, "pool_pre_ping": settings.pool_pre_ping}
        if settings.use_null_pool:
            options["poolclass"] = NullPool
        self._engine = create_async_engine(settings.database_url, **options)
        if settings.is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_env(cls) -> Self:
        return cls(DatabaseSettings())

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session inside a transaction.

        The transaction commits when the block exits normally and rolls back
        (re-raising) when it exits with an exception. Services only flush.
        """
        async with self._session_factory() as session, session.begin():
            yield session

    async def ensure_schema(self) -> None:
        """Create missing tables when ``create_schema`` is enabled."""
        if not self._settings.create_schema:
            return
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # ON DELETE CASCADE on connections/events relies on this.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
