"""Tally Analytics events ingestion service."""

__version__ = "1.0.0"
