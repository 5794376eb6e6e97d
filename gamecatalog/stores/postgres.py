"""PostgreSQL store with async SQLAlchemy.

Handles:
- Engine / connection pool lifecycle
- Session management (commit on success, rollback on error)

The Database object is created by the hosting process and passed to whoever
needs it; there is no module-level engine.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from gamecatalog.settings import Settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class Database:
    """Owns the async engine and session factory."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory: async_sessionmaker[AsyncSession] | None = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Create the connection pool (connections are opened lazily)."""
        engine = create_async_engine(
            settings.async_database_url,
            echo=settings.debug,
            connect_args=settings.asyncpg_connect_args,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )
        return cls(engine)

    async def ping(self) -> None:
        """Run a trivial query to validate connectivity."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        """Close database connection pool."""
        if self._session_factory is not None:
            await self.engine.dispose()
            self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session context manager.

        Usage:
            async with database.session() as session:
                result = await session.execute(query)
        """
        if self._session_factory is None:
            raise RuntimeError("Database is closed.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
