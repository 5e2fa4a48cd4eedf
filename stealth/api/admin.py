"""Internal admin endpoints: ingestion, rescoring, review and merge.

Secured with a static token (X-Internal-Token header). Meant for operators,
cron and scripts.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stealth.api.deps import get_db, require_internal_token
from stealth.ingestion.registry import UnknownAdapterError, build_default_registry
from stealth.schemas.entity import EntityMergeRequest, EntityRead, EntityReviewUpdate
from stealth.schemas.ingestion import ConnectorStatus, IngestionJobRead, IngestionTrigger
from stealth.services.entity_queries import entity_to_read, update_entity_review
from stealth.services.entity_resolver import EntityNotFoundError, merge_entities
from stealth.services.ingestion_job import list_ingestion_jobs, run_ingestion
from stealth.services.scoring import recalculate_all_scores

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/internal",
    dependencies=[Depends(require_internal_token)],
)


# ── Ingestion ───────────────────────────────────────────────────────


@router.post("/ingest")
async def trigger_ingestion(
    trigger: IngestionTrigger | None = None,
    db: Session = Depends(get_db),
):
    """Run one connector, or all enabled connectors, and return the job summary.

    Partial adapter failures are reported in the summary, not as an HTTP error.
    """
    trigger = trigger or IngestionTrigger()
    try:
        return await run_ingestion(
            db,
            connector=trigger.connector,
            since_days=trigger.since_days,
            job_type="manual",
        )
    except UnknownAdapterError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.post("/recalculate_scores")
def trigger_recalculate_scores(db: Session = Depends(get_db)):
    result = recalculate_all_scores(db)
    return {"status": "completed", **result}


@router.get("/ingestion_jobs", response_model=list[IngestionJobRead])
def api_ingestion_jobs(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[IngestionJobRead]:
    return [IngestionJobRead.model_validate(job) for job in list_ingestion_jobs(db, limit)]


@router.get("/connectors", response_model=list[ConnectorStatus])
def api_connectors() -> list[ConnectorStatus]:
    return build_default_registry().describe()


# ── Entity review ───────────────────────────────────────────────────


@router.patch("/entities/{entity_id}/review", response_model=EntityRead)
def api_update_review(
    entity_id: int,
    update: EntityReviewUpdate,
    db: Session = Depends(get_db),
) -> EntityRead:
    try:
        entity = update_entity_review(db, entity_id, update)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Entity not found") from None
    return entity_to_read(entity)


@router.post("/entities/merge", response_model=EntityRead)
def api_merge_entities(
    request: EntityMergeRequest,
    db: Session = Depends(get_db),
) -> EntityRead:
    """Merge ``duplicate_id`` into ``primary_id``. The duplicate is deleted."""
    try:
        entity = merge_entities(db, request.primary_id, request.duplicate_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return entity_to_read(entity)
