"""SQLAlchemy models."""

from stealth.models.entity import StealthEntity
from stealth.models.entity_alias import StealthEntityAlias
from stealth.models.entity_identifier import StealthEntityIdentifier
from stealth.models.ingestion_job import IngestionJob
from stealth.models.stealth_signal import StealthSignal

__all__ = [
    "IngestionJob",
    "StealthEntity",
    "StealthEntityAlias",
    "StealthEntityIdentifier",
    "StealthSignal",
]
