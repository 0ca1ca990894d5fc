"""Repositories layer - target store access."""

from ledger_migration.repositories.target_store import (
    TargetErrorCode,
    TargetStore,
    TargetStoreError,
)

__all__ = ["TargetErrorCode", "TargetStore", "TargetStoreError"]
