"""Signal store and entity accounting.

Each signal is resolved, appended and rolled up into its entity in a single
commit, made while the resolver still holds the signal's lock buckets. A
failing signal is rolled back and reported; the batch continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from stealth.models.entity import StealthEntity
from stealth.models.stealth_signal import StealthSignal
from stealth.schemas.signal import RawSignal
from stealth.services.entity_resolver import EntityResolver

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    entities_created: int = 0
    entities_updated: int = 0
    signals_stored: int = 0
    signals_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    touched_entity_ids: set[int] = field(default_factory=set)


def _ensure_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def signal_exists(db: Session, source: str, source_id: str) -> bool:
    """True if this adapter already delivered a signal with this source id."""
    return (
        db.query(StealthSignal.id)
        .filter(StealthSignal.source == source, StealthSignal.source_id == source_id)
        .first()
        is not None
    )


def append_signal(
    db: Session, entity: StealthEntity, signal: RawSignal, source: str
) -> StealthSignal:
    """Insert the signal record and update the entity rollup. Does not commit."""
    detected_at = _ensure_utc(signal.detected_at)
    raw_data = dict(signal.raw_data or {})
    raw_data.update(
        {
            "sourceId": signal.source_id,
            "sourceUrl": signal.source_url,
            "entityName": signal.entity_name,
            "identifiers": dict(signal.identifiers),
            "metadata": dict(signal.metadata),
        }
    )
    record = StealthSignal(
        signal_type=signal.signal_type.value,
        signal_weight=signal.signal_weight,
        confidence=signal.confidence,
        source=source,
        source_id=signal.source_id,
        source_url=signal.source_url,
        title=signal.title[:500],
        description=signal.description,
        raw_data=raw_data,
        detected_at=detected_at,
    )
    entity.signals.append(record)

    last = _ensure_utc(entity.last_signal_at)
    if last is None or detected_at > last:
        entity.last_signal_at = detected_at
    entity.signal_count = (entity.signal_count or 0) + 1
    db.flush()
    return record


def process_signals(
    db: Session,
    signals: list[RawSignal],
    source: str,
    resolver: EntityResolver | None = None,
) -> ProcessResult:
    """Resolve and store a batch of signals from one adapter, in order."""
    resolver = resolver or EntityResolver(db)
    result = ProcessResult()
    created: set[int] = set()
    updated: set[int] = set()

    for signal in signals:
        try:
            if signal_exists(db, source, signal.source_id):
                result.signals_skipped += 1
                logger.debug("Duplicate signal skipped: %s:%s", source, signal.source_id)
                continue

            with resolver.claim(signal) as resolution:
                append_signal(db, resolution.entity, signal, source)
                db.commit()

            entity_id = resolution.entity.id
            result.signals_stored += 1
            result.touched_entity_ids.add(entity_id)
            if resolution.is_new:
                created.add(entity_id)
            elif entity_id not in created:
                updated.add(entity_id)
        except Exception as e:
            db.rollback()
            msg = f"{source}:{signal.source_id}: {e}"
            result.errors.append(msg)
            logger.exception("Signal processing failed for %s:%s", source, signal.source_id)

    result.entities_created = len(created)
    result.entities_updated = len(updated)
    return result
