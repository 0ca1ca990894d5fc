"""Empathy Ledger migration: Airtable record store to the relational target store."""

__version__ = "1.0.0"
