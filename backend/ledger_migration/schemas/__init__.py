"""Pydantic schemas for source-side data."""

from ledger_migration.schemas.source_record import (
    FieldValue,
    SourcePage,
    SourceRecord,
)

__all__ = [
    "FieldValue",
    "SourcePage",
    "SourceRecord",
]
