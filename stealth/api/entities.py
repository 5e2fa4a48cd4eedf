"""Public read API: entities, their signals, scoring breakdowns and dashboard stats."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stealth.api.deps import get_db
from stealth.schemas.entity import (
    DashboardStats,
    EntityList,
    EntityRead,
    EntitySummary,
    ScoringBreakdown,
)
from stealth.schemas.signal import RecentSignalRead, SignalRead
from stealth.services.entity_queries import (
    entity_to_read,
    get_entity,
    get_entity_signals,
    get_recent_signals,
    list_entities,
    search_entities,
)
from stealth.services.entity_resolver import EntityNotFoundError
from stealth.services.scoring import (
    get_dashboard_stats,
    get_entity_scoring_breakdown,
    get_high_scoring_entities,
)

router = APIRouter()


# ── Entities ─────────────────────────────────────────────────────────


@router.get("/entities", response_model=EntityList)
def api_list_entities(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    min_score: float | None = Query(None, ge=0, le=100),
    entity_type: str | None = Query(None, pattern="^(company|project|joint_venture|unknown)$"),
    search: str | None = Query(None, max_length=200),
    db: Session = Depends(get_db),
) -> EntityList:
    """List entities ordered by score descending."""
    return list_entities(
        db,
        limit=limit,
        offset=offset,
        min_score=min_score,
        entity_type=entity_type,
        search=search,
    )


@router.get("/entities/search", response_model=list[EntitySummary])
def api_search_entities(
    q: str = Query(..., min_length=2, max_length=200),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[EntitySummary]:
    """Search canonical names and aliases (case-insensitive substring)."""
    try:
        rows = search_entities(db, q, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return [EntitySummary.model_validate(row) for row in rows]


@router.get("/entities/high_scoring", response_model=list[EntitySummary])
def api_high_scoring_entities(
    min_score: float | None = Query(None, ge=0, le=100),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[EntitySummary]:
    rows = get_high_scoring_entities(db, min_score=min_score, limit=limit)
    return [EntitySummary.model_validate(row) for row in rows]


@router.get("/entities/{entity_id}", response_model=EntityRead)
def api_get_entity(entity_id: int, db: Session = Depends(get_db)) -> EntityRead:
    entity = get_entity(db, entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail="Entity not found")
    return entity_to_read(entity)


@router.get("/entities/{entity_id}/signals", response_model=list[SignalRead])
def api_get_entity_signals(
    entity_id: int,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[SignalRead]:
    """Signals for one entity, newest first."""
    try:
        signals = get_entity_signals(db, entity_id, limit=limit)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Entity not found") from None
    return [SignalRead.model_validate(s) for s in signals]


@router.get("/entities/{entity_id}/breakdown", response_model=ScoringBreakdown)
def api_get_scoring_breakdown(entity_id: int, db: Session = Depends(get_db)) -> ScoringBreakdown:
    """Per-signal and per-type contributions behind the entity's score."""
    breakdown = get_entity_scoring_breakdown(db, entity_id)
    if breakdown is None:
        raise HTTPException(status_code=404, detail="Entity not found")
    return breakdown


# ── Signals and dashboard ────────────────────────────────────────────


@router.get("/signals/recent", response_model=list[RecentSignalRead])
def api_recent_signals(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[RecentSignalRead]:
    return get_recent_signals(db, limit=limit)


@router.get("/dashboard", response_model=DashboardStats)
def api_dashboard(db: Session = Depends(get_db)) -> DashboardStats:
    return get_dashboard_stats(db)
