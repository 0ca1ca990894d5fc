"""TargetStore gateway for writing migrated rows.

Handles all database operations for the migration's target entities.
Each insert runs in its own transaction, so a failed row never leaves a
partial write behind and never poisons the session used for the next row.

ERROR LOGGING REQUIREMENTS:
- Log method entry/exit at DEBUG level with table names
- Constraint violations become TargetStoreError with a structured code
- Connectivity, authorization and schema errors become
  UnrecoverableMigrationError
- Add timing logs for slow operations
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_migration.core.database import Base, transaction
from ledger_migration.core.errors import UnrecoverableMigrationError
from ledger_migration.core.logging import db_logger, get_logger
from ledger_migration.models.site_metric import SiteMetric

logger = get_logger(__name__)


class TargetErrorCode(str, Enum):
    """Structured classification of a failed write."""

    UNIQUE_VIOLATION = "unique_violation"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    NOT_NULL_VIOLATION = "not_null_violation"
    CHECK_VIOLATION = "check_violation"
    DATA_ERROR = "data_error"
    UNKNOWN = "unknown"


# PostgreSQL SQLSTATE codes (asyncpg / psycopg expose these on the driver error)
SQLSTATE_CODES = {
    "23505": TargetErrorCode.UNIQUE_VIOLATION,
    "23503": TargetErrorCode.FOREIGN_KEY_VIOLATION,
    "23502": TargetErrorCode.NOT_NULL_VIOLATION,
    "23514": TargetErrorCode.CHECK_VIOLATION,
}

# Message fragments for drivers without SQLSTATE (SQLite)
MESSAGE_CODES = {
    "UNIQUE constraint failed": TargetErrorCode.UNIQUE_VIOLATION,
    "duplicate key value violates unique constraint": TargetErrorCode.UNIQUE_VIOLATION,
    "FOREIGN KEY constraint failed": TargetErrorCode.FOREIGN_KEY_VIOLATION,
    "NOT NULL constraint failed": TargetErrorCode.NOT_NULL_VIOLATION,
    "CHECK constraint failed": TargetErrorCode.CHECK_VIOLATION,
}


class TargetStoreError(Exception):
    """A write to the target store was rejected."""

    def __init__(
        self,
        message: str,
        code: TargetErrorCode = TargetErrorCode.UNKNOWN,
        table: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.table = table

    @property
    def is_unique_violation(self) -> bool:
        return self.code == TargetErrorCode.UNIQUE_VIOLATION


def classify_integrity_error(error: IntegrityError) -> TargetErrorCode:
    """Map a driver integrity error onto a TargetErrorCode."""
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in SQLSTATE_CODES:
        return SQLSTATE_CODES[sqlstate]

    message = str(orig) if orig is not None else str(error)
    for fragment, code in MESSAGE_CODES.items():
        if fragment in message:
            return code
    return TargetErrorCode.UNKNOWN


class TargetStore:
    """Gateway for inserts, natural-key lookups and counts on the target store.

    All methods open their own session from the factory, so callers never
    hold a session across records.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        slow_threshold_ms: float = 100,
    ) -> None:
        self._session_factory = session_factory
        self._slow_threshold_ms = slow_threshold_ms

    @asynccontextmanager
    async def _translate_errors(
        self, table: str, operation: str
    ) -> AsyncGenerator[None, None]:
        """Turn SQLAlchemy/driver exceptions into migration errors."""
        start_time = time.monotonic()
        try:
            yield
        except IntegrityError as e:
            code = classify_integrity_error(e)
            raise TargetStoreError(
                f"{operation} on {table} rejected ({code.value}): {e.orig}",
                code=code,
                table=table,
            ) from e
        except DataError as e:
            raise TargetStoreError(
                f"{operation} on {table} rejected (invalid data): {e.orig}",
                code=TargetErrorCode.DATA_ERROR,
                table=table,
            ) from e
        except (OperationalError, InterfaceError, ProgrammingError) as e:
            db_logger.connection_error(e, "")
            raise UnrecoverableMigrationError(
                f"Target store unavailable during {operation} on {table}: "
                f"{type(e).__name__}: {e.orig}"
            ) from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise UnrecoverableMigrationError(
                    f"Target store connection lost during {operation} on {table}"
                ) from e
            raise TargetStoreError(
                f"{operation} on {table} failed: {e.orig}",
                table=table,
            ) from e
        except (OSError, TimeoutError) as e:
            raise UnrecoverableMigrationError(
                f"Target store unreachable during {operation} on {table}: {e}"
            ) from e
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            if duration_ms > self._slow_threshold_ms:
                db_logger.slow_query(
                    query=f"{operation} {table}",
                    duration_ms=duration_ms,
                    table=table,
                )

    async def insert(self, model: type[Base], values: dict[str, Any]) -> str:
        """Insert one row and return its generated id.

        Raises:
            TargetStoreError: If the row violates a constraint.
            UnrecoverableMigrationError: If the target store is unreachable.
        """
        table = model.__tablename__
        logger.debug(f"Inserting into {table}", extra={"table": table})

        async with self._translate_errors(table, "INSERT"):
            async with self._session_factory() as session:
                async with transaction(
                    session, table=table, slow_threshold_ms=self._slow_threshold_ms
                ):
                    row = model(**values)
                    session.add(row)
                    await session.flush()
                    row_id: str = row.id  # type: ignore[attr-defined]

        logger.debug(
            f"Inserted into {table}: {row_id}",
            extra={"table": table, "id": row_id},
        )
        return row_id

    async def select_id(self, model: type[Base], **filters: Any) -> str | None:
        """Return the id of the first row matching ``filters``, if any."""
        table = model.__tablename__
        async with self._translate_errors(table, "SELECT"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(model.id).filter_by(**filters).limit(1)  # type: ignore[attr-defined]
                )
                return result.scalar_one_or_none()

    async def insert_or_reuse(
        self,
        model: type[Base],
        values: dict[str, Any],
        natural_key: str,
    ) -> tuple[str, bool]:
        """Insert a row, or reuse the existing row with the same natural key.

        Returns:
            Tuple of (target id, created). ``created`` is False when an
            existing row was reused.

        Raises:
            TargetStoreError: For any rejection other than a natural-key
                conflict that resolves to an existing row.
        """
        try:
            return await self.insert(model, values), True
        except TargetStoreError as e:
            if not e.is_unique_violation:
                raise
            key_value = values[natural_key]
            existing_id = await self.select_id(model, **{natural_key: key_value})
            if existing_id is None:
                # Conflict was on a different unique constraint
                raise
            logger.debug(
                f"Reusing existing {model.__tablename__} row for {natural_key}={key_value}",
                extra={
                    "table": model.__tablename__,
                    "natural_key": natural_key,
                    "id": existing_id,
                },
            )
            return existing_id, False

    async def count(self, model: type[Base], **filters: Any) -> int:
        """Count rows matching ``filters``."""
        table = model.__tablename__
        async with self._translate_errors(table, "COUNT"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count()).select_from(model).filter_by(**filters)
                )
                return int(result.scalar_one())

    async def upsert_metric(self, name: str, value: int) -> None:
        """Set a named site metric, creating it when missing."""
        table = SiteMetric.__tablename__
        async with self._translate_errors(table, "UPSERT"):
            async with self._session_factory() as session:
                async with transaction(
                    session, table=table, slow_threshold_ms=self._slow_threshold_ms
                ):
                    result = await session.execute(
                        select(SiteMetric).where(SiteMetric.metric_name == name)
                    )
                    metric = result.scalar_one_or_none()
                    if metric is None:
                        session.add(SiteMetric(metric_name=name, metric_value=value))
                    else:
                        metric.metric_value = value
