"""Integrations layer - External service clients.

Integrations handle communication with external APIs and services.
They abstract the details of external service protocols.
"""

from ledger_migration.integrations.airtable import (
    AirtableAuthError,
    AirtableCircuitOpenError,
    AirtableClient,
    AirtableError,
    AirtableRateLimitError,
    AirtableTimeoutError,
)

__all__ = [
    "AirtableAuthError",
    "AirtableCircuitOpenError",
    "AirtableClient",
    "AirtableError",
    "AirtableRateLimitError",
    "AirtableTimeoutError",
]
