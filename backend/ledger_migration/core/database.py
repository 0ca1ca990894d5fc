"""Target database configuration and session management.

Features:
- Async SQLAlchemy with connection pooling (asyncpg)
- Slow operation logging at WARNING
- Connection error logging with masked strings
- Transaction failure logging with rollback context
"""

import re
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ledger_migration.core.config import Settings, get_settings
from ledger_migration.core.logging import db_logger, get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for target store models."""

    pass


def to_async_url(database_url: str) -> str:
    """Convert postgres:// and postgresql:// URLs to the asyncpg dialect."""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class DatabaseManager:
    """Manages the target database engine and session factory."""

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine."""
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get the session factory."""
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._session_factory

    def init_db(self, settings: Settings | None = None) -> None:
        """Initialize database engine and session factory."""
        settings = settings or get_settings()
        db_url = to_async_url(str(settings.database_url))

        try:
            self._engine = create_async_engine(
                db_url,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                pool_pre_ping=True,  # Verify connections before use
                echo=settings.debug,
                # asyncpg uses 'ssl' not 'sslmode' (which is libpq/psycopg2)
                connect_args={
                    "timeout": settings.db_connect_timeout,
                    "command_timeout": settings.db_command_timeout,
                    **({"ssl": "require"} if settings.environment == "production" else {}),
                },
            )
            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            logger.info("Database engine initialized successfully")

        except Exception as e:
            db_logger.connection_error(e, db_url)
            raise

    async def close(self) -> None:
        """Close database connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections closed")


# Global database manager instance
db_manager = DatabaseManager()


@asynccontextmanager
async def transaction(
    session: AsyncSession,
    table: str | None = None,
    slow_threshold_ms: float = 100,
) -> AsyncGenerator[AsyncSession, None]:
    """Context manager for explicit transaction handling.

    Usage:
        async with transaction(session, table="stories") as txn:
            txn.add(story)
    """
    start_time = time.monotonic()

    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        db_logger.transaction_failure(
            e,
            table=table or extract_table_from_error(e),
            context="Explicit transaction rollback",
        )
        raise
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > slow_threshold_ms:
            db_logger.slow_query(
                query=f"transaction on {table or 'unknown'}",
                duration_ms=duration_ms,
                table=table,
            )


def extract_table_from_error(error: Exception) -> str | None:
    """Try to extract table name from SQLAlchemy error."""
    error_str = str(error)
    patterns = [
        r'relation "([^"]+)"',
        r"table '([^']+)'",
        r"constraint failed: ([a-z_]+)\.",
        r'INSERT INTO "?([^\s"(]+)"?',
        r'UPDATE "?([^\s"]+)"?',
    ]
    for pattern in patterns:
        match = re.search(pattern, error_str, re.IGNORECASE)
        if match:
            return match.group(1)
    return None
