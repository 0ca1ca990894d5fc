"""Core utilities and configuration."""

from ledger_migration.core.config import Settings, get_settings
from ledger_migration.core.database import Base, db_manager, transaction
from ledger_migration.core.errors import (
    MigrationError,
    RecordFieldError,
    RecordMigrationError,
    RegistryConflictError,
    StageOrderError,
    UnrecoverableMigrationError,
)
from ledger_migration.core.logging import (
    RunLogHandler,
    airtable_logger,
    db_logger,
    get_logger,
    setup_logging,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "transaction",
    # Errors
    "MigrationError",
    "RecordFieldError",
    "RecordMigrationError",
    "RegistryConflictError",
    "StageOrderError",
    "UnrecoverableMigrationError",
    # Logging
    "RunLogHandler",
    "airtable_logger",
    "db_logger",
    "get_logger",
    "setup_logging",
]
