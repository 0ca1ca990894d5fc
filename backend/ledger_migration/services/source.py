"""Source adapter boundary.

Migrators read source tables only through ``SourceAdapter.fetch_all``. Any
failure to read a table is unrecoverable for the run.
"""

from collections.abc import Sequence
from typing import Protocol

from ledger_migration.core.errors import UnrecoverableMigrationError
from ledger_migration.core.logging import get_logger
from ledger_migration.integrations.airtable import AirtableClient, AirtableError
from ledger_migration.schemas.source_record import SourceRecord

logger = get_logger(__name__)


class SourceAdapter(Protocol):
    """Anything that can return the complete record set of a named table."""

    async def fetch_all(
        self, table: str, fields: Sequence[str] | None = None
    ) -> list[SourceRecord]: ...


class AirtableSource:
    """SourceAdapter backed by the Airtable REST API."""

    def __init__(self, client: AirtableClient) -> None:
        self._client = client

    async def fetch_all(
        self, table: str, fields: Sequence[str] | None = None
    ) -> list[SourceRecord]:
        try:
            return await self._client.list_records(table, fields=fields)
        except AirtableError as e:
            raise UnrecoverableMigrationError(
                f"Could not read source table '{table}': {e}"
            ) from e

    async def close(self) -> None:
        await self._client.close()
