"""Pydantic schema for records read from the Airtable source store.

A record is an opaque id plus a loosely-typed field bag. Field values are a
closed variant: absent (key missing), text, list of text (linked record ids,
multi-selects), number or boolean. Migrators read values only through the
typed accessors below; a value of the wrong variant raises RecordFieldError.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger_migration.core.errors import RecordFieldError
from ledger_migration.core.logging import get_logger

logger = get_logger(__name__)

FieldValue = bool | int | float | str | list[str]


def _is_supported(value: Any) -> bool:
    if isinstance(value, (bool, int, float, str)):
        return True
    if isinstance(value, list):
        return all(isinstance(item, str) for item in value)
    return False


class SourceRecord(BaseModel):
    """One record of a source table."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Opaque Airtable record id")
    created_time: datetime | None = Field(None, alias="createdTime")
    fields: dict[str, FieldValue] = Field(default_factory=dict)

    @field_validator("fields", mode="before")
    @classmethod
    def drop_unsupported_values(cls, v: Any) -> dict[str, Any]:
        """Drop attachments, collaborators and other nested shapes."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("fields must be an object")
        kept: dict[str, Any] = {}
        for name, value in v.items():
            if value is None:
                continue
            if _is_supported(value):
                kept[name] = value
            else:
                logger.debug(
                    f"Dropping unsupported field value: {name}",
                    extra={"field": name, "value_type": type(value).__name__},
                )
        return kept

    def _wrong_shape(self, name: str, expected: str) -> RecordFieldError:
        value = self.fields.get(name)
        return RecordFieldError(
            f"Field '{name}' on record {self.id} should be {expected}, "
            f"got {type(value).__name__}",
            field=name,
            value=value,
            record_id=self.id,
        )

    def has(self, name: str) -> bool:
        return name in self.fields

    def raw(self, name: str) -> FieldValue | None:
        """Untyped access, for total functions such as the normalizers."""
        return self.fields.get(name)

    def text(self, name: str) -> str | None:
        """Trimmed text value; empty text reads as absent."""
        value = self.fields.get(name)
        if value is None:
            return None
        if not isinstance(value, str):
            raise self._wrong_shape(name, "text")
        return value.strip() or None

    def links(self, name: str) -> list[str]:
        """Linked record ids (or multi-select values); absent reads as empty."""
        value = self.fields.get(name)
        if value is None:
            return []
        if not isinstance(value, list):
            raise self._wrong_shape(name, "a list of text")
        return [item for item in value if item.strip()]

    def first_link(self, name: str) -> str | None:
        links = self.links(name)
        return links[0] if links else None

    def number(self, name: str) -> int | float | None:
        value = self.fields.get(name)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._wrong_shape(name, "a number")
        return value

    def flag(self, name: str) -> bool | None:
        value = self.fields.get(name)
        if value is None:
            return None
        if not isinstance(value, bool):
            raise self._wrong_shape(name, "a checkbox")
        return value


class SourcePage(BaseModel):
    """One page of an Airtable list-records response."""

    records: list[SourceRecord] = Field(default_factory=list)
    offset: str | None = None
