"""Stealth discovery: signal ingestion, entity resolution and activity scoring."""

__version__ = "0.1.0"
