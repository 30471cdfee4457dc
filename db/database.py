"""
Database handle for FlexiForms: SQLAlchemy async engine with connection pooling.

The handle is created by the app factory, opened in the app lifespan and closed
on shutdown; request handlers get sessions through get_session().
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.sql import text

from db.tables import metadata

logger = logging.getLogger("backend.db")


def normalize_async_url(dsn: str) -> str:
    """Make sure SQLAlchemy uses an async driver for the configured URL."""
    if dsn.startswith("postgres://"):
        dsn = "postgresql://" + dsn[len("postgres://"):]
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://"):]
    if dsn.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + dsn[len("sqlite://"):]
    return dsn


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, url: str, pool_size: int = 5, max_overflow: int = 10):
        self.url = normalize_async_url(url)
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    async def connect(self, create_tables: bool = True) -> None:
        engine_kwargs = {"echo": False, "pool_pre_ping": True}
        if not self.is_sqlite:
            engine_kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=30,
                pool_recycle=1800,
            )
        self.engine = create_async_engine(self.url, **engine_kwargs)
        self.session_maker = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if create_tables:
                    await conn.run_sync(metadata.create_all)
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            await self.engine.dispose()
            self.engine = None
            self.session_maker = None
            raise
        logger.info("Database connection successful (%s)", self.engine.url.get_backend_name())

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connection closed")
        self.engine = None
        self.session_maker = None

    def session(self) -> AsyncSession:
        if self.session_maker is None:
            raise RuntimeError("Database is not connected")
        return self.session_maker()

    async def ping(self) -> bool:
        async with self.session() as session:
            await session.execute(text("SELECT 1"))
        return True


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an AsyncSession and manages commit/rollback/close."""
    database: Database = request.app.state.db
    session = database.session()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
