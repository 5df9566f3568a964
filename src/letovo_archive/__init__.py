"""Letovo Archive: deduplicating snapshot ledger and blob store."""

__version__ = "0.1.0"
