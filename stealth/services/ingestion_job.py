"""Ingestion job: run adapters, store their signals, rescore touched entities.

Every run is recorded as an IngestionJob row so manual triggers, scheduled
runs and backfills share the same audit trail.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from stealth.config import get_settings
from stealth.ingestion.orchestrator import IngestionOrchestrator
from stealth.ingestion.registry import AdapterRegistry, build_default_registry
from stealth.models.ingestion_job import IngestionJob
from stealth.services.entity_resolver import EntityResolver
from stealth.services.scoring import update_entity_score
from stealth.services.signal_store import process_signals

logger = logging.getLogger(__name__)


def _job_summary(job: IngestionJob) -> dict[str, Any]:
    return {
        "job_id": job.id,
        "status": job.status,
        "connector": job.connector,
        "signals_discovered": job.signals_discovered,
        "entities_created": job.entities_created,
        "entities_updated": job.entities_updated,
        "signals_stored": job.signals_stored,
        "signals_skipped": job.signals_skipped,
        "errors_count": job.errors_count,
        "connector_results": job.connector_results or {},
        "error": job.error_message,
    }


async def run_ingestion(
    db: Session,
    connector: str | None = None,
    since_days: int | None = None,
    job_type: str = "manual",
    registry: AdapterRegistry | None = None,
) -> dict[str, Any]:
    """Run one adapter (``connector``) or all enabled adapters and persist the results.

    Returns the job summary. Adapter and per-signal failures are recorded on
    the job (status "partial"); only an unexpected failure of the run itself
    marks it "failed".

    Raises:
        UnknownAdapterError: If ``connector`` names no registered adapter.
            Raised before any job row is created.
    """
    registry = registry or build_default_registry()
    if connector is not None:
        registry.config(connector)

    days = since_days or get_settings().ingest_default_since_days
    since = datetime.now(UTC) - timedelta(days=days)

    job = IngestionJob(
        connector=connector or "all",
        job_type=job_type,
        status="started",
        started_at=datetime.now(UTC),
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    try:
        job.status = "running"
        db.commit()

        orchestrator = IngestionOrchestrator(registry)
        if connector is not None:
            aggregate = await orchestrator.run_one(connector, since)
        else:
            aggregate = await orchestrator.run_all(since)

        resolver = EntityResolver(db)
        all_errors: list[str] = []
        touched: set[int] = set()
        connector_results: dict[str, Any] = {}
        totals = {
            "signals_discovered": 0,
            "entities_created": 0,
            "entities_updated": 0,
            "signals_stored": 0,
            "signals_skipped": 0,
        }

        for name, result in aggregate.results.items():
            all_errors.extend(result.errors)
            processed = process_signals(db, result.signals, name, resolver=resolver)
            all_errors.extend(processed.errors)
            touched |= processed.touched_entity_ids

            totals["signals_discovered"] += result.signals_discovered
            totals["entities_created"] += processed.entities_created
            totals["entities_updated"] += processed.entities_updated
            totals["signals_stored"] += processed.signals_stored
            totals["signals_skipped"] += processed.signals_skipped

            summary = result.summary()
            summary.update(
                {
                    "signals_stored": processed.signals_stored,
                    "signals_skipped": processed.signals_skipped,
                    "entities_created": processed.entities_created,
                    "entities_updated": processed.entities_updated,
                    "processing_errors": len(processed.errors),
                }
            )
            connector_results[name] = summary
            logger.info(
                "Ingest %s: %d discovered, %d stored, %d skipped, %d errors",
                name,
                result.signals_discovered,
                processed.signals_stored,
                processed.signals_skipped,
                len(result.errors) + len(processed.errors),
            )

        for entity_id in sorted(touched):
            update_entity_score(db, entity_id)

        for key, value in totals.items():
            setattr(job, key, value)
        job.connector_results = connector_results
        job.errors_count = len(all_errors)
        job.error_message = "; ".join(all_errors[:10]) if all_errors else None
        job.status = "partial" if all_errors else "completed"
        job.completed_at = datetime.now(UTC)
        db.commit()

    except Exception as exc:
        logger.exception("Ingestion job %s failed", job.id)
        db.rollback()
        job.status = "failed"
        job.error_message = str(exc)
        job.completed_at = datetime.now(UTC)
        db.commit()

    return _job_summary(job)


def list_ingestion_jobs(db: Session, limit: int = 20) -> list[IngestionJob]:
    """Most recent ingestion jobs first."""
    return (
        db.query(IngestionJob)
        .order_by(IngestionJob.created_at.desc(), IngestionJob.id.desc())
        .limit(limit)
        .all()
    )
