"""
Database infrastructure for NeuraSlide API.

Async SQLAlchemy engine and session management. A single ``Database`` is
constructed in the application lifespan, stored on ``app.state`` and handed
to services through the ``get_database`` dependency.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
import structlog

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def make_async_url(url: str) -> str:
    """Convert a sync database URL to its async driver form."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if url.startswith(("postgresql+psycopg://", "sqlite+aiosqlite://")):
        return url
    raise ValueError(f"Unsupported database URL scheme: {url.split('://')[0]}")


class Database:
    """Owns the async engine and session factory for one application."""

    def __init__(self, url: str, echo: bool = False):
        self.url = make_async_url(url)

        if self.url.startswith("sqlite"):
            # In-memory SQLite must share one connection across sessions
            self.engine: AsyncEngine = create_async_engine(
                self.url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_async_engine(
                self.url,
                pool_size=10,
                max_overflow=5,
                pool_timeout=30,
                pool_recycle=3600,
                echo=echo,
            )

        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("database_initialized", url=self.url.split("@")[-1])

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional async session scope."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all tables defined in models (for development/testing)."""
        # Registers every model on Base.metadata
        from neuraslide.db import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_created")

    async def ping(self) -> bool:
        """Run a trivial query; used by the health endpoints."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def dispose(self) -> None:
        """Dispose the engine and release connections."""
        await self.engine.dispose()
        logger.info("database_closed")


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's Database."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database not initialized. Lifespan did not run.")
    return db
