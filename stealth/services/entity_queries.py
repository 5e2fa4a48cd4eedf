"""Read and review operations over resolved entities and their signals."""

from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from stealth.models.entity import StealthEntity
from stealth.models.entity_alias import StealthEntityAlias
from stealth.models.stealth_signal import StealthSignal
from stealth.schemas.entity import EntityList, EntityRead, EntityReviewUpdate, EntitySummary
from stealth.schemas.signal import RecentSignalRead, SignalRead
from stealth.services.entity_resolver import EntityNotFoundError

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2


def entity_to_read(entity: StealthEntity) -> EntityRead:
    return EntityRead(
        id=entity.id,
        canonical_name=entity.canonical_name,
        entity_type=entity.entity_type,
        current_score=entity.current_score,
        signal_count=entity.signal_count,
        last_signal_at=entity.last_signal_at,
        needs_review=entity.needs_review,
        all_names=entity.all_names,
        identifiers=entity.identifier_map,
        review_notes=entity.review_notes,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )


def _name_matches(term: str):
    """Filter clause: canonical name or any alias contains ``term``."""
    pattern = f"%{term}%"
    return or_(
        StealthEntity.canonical_name.ilike(pattern),
        StealthEntity.aliases.any(StealthEntityAlias.name.ilike(pattern)),
    )


def list_entities(
    db: Session,
    limit: int = 50,
    offset: int = 0,
    min_score: float | None = None,
    entity_type: str | None = None,
    search: str | None = None,
) -> EntityList:
    """Entities ordered by score descending, with the unpaginated total."""
    query = db.query(StealthEntity)
    if min_score is not None:
        query = query.filter(StealthEntity.current_score >= min_score)
    if entity_type:
        query = query.filter(StealthEntity.entity_type == entity_type)
    if search and search.strip():
        query = query.filter(_name_matches(search.strip()))

    total = query.count()
    rows = (
        query.order_by(StealthEntity.current_score.desc(), StealthEntity.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return EntityList(
        items=[EntitySummary.model_validate(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


def get_entity(db: Session, entity_id: int) -> StealthEntity | None:
    return (
        db.query(StealthEntity)
        .options(selectinload(StealthEntity.aliases), selectinload(StealthEntity.identifiers))
        .filter(StealthEntity.id == entity_id)
        .first()
    )


def get_entity_signals(db: Session, entity_id: int, limit: int = 50) -> list[StealthSignal]:
    """Signals for one entity, newest first.

    Raises:
        EntityNotFoundError: If the entity does not exist.
    """
    if db.get(StealthEntity, entity_id) is None:
        raise EntityNotFoundError(f"Entity {entity_id} not found")
    return (
        db.query(StealthSignal)
        .filter(StealthSignal.entity_id == entity_id)
        .order_by(StealthSignal.detected_at.desc(), StealthSignal.id.desc())
        .limit(limit)
        .all()
    )


def search_entities(db: Session, query: str, limit: int = 20) -> list[StealthEntity]:
    """Entities whose canonical name or an alias contains ``query``.

    Raises:
        ValueError: If the query is shorter than two characters.
    """
    term = (query or "").strip()
    if len(term) < MIN_SEARCH_LENGTH:
        raise ValueError(f"Search query must be at least {MIN_SEARCH_LENGTH} characters")
    return (
        db.query(StealthEntity)
        .filter(_name_matches(term))
        .order_by(StealthEntity.current_score.desc(), StealthEntity.id)
        .limit(limit)
        .all()
    )


def get_recent_signals(db: Session, limit: int = 20) -> list[RecentSignalRead]:
    rows = (
        db.query(StealthSignal, StealthEntity.canonical_name)
        .join(StealthEntity, StealthSignal.entity_id == StealthEntity.id)
        .order_by(StealthSignal.detected_at.desc(), StealthSignal.id.desc())
        .limit(limit)
        .all()
    )
    return [
        RecentSignalRead(
            **SignalRead.model_validate(signal).model_dump(), entity_name=entity_name
        )
        for signal, entity_name in rows
    ]


def update_entity_review(
    db: Session, entity_id: int, update: EntityReviewUpdate
) -> StealthEntity:
    """Apply an admin review decision.

    Raises:
        EntityNotFoundError: If the entity does not exist.
    """
    entity = db.get(StealthEntity, entity_id)
    if entity is None:
        raise EntityNotFoundError(f"Entity {entity_id} not found")

    entity.needs_review = update.needs_review
    if update.review_notes is not None:
        entity.review_notes = update.review_notes
    if update.entity_type is not None:
        entity.entity_type = update.entity_type.value
    db.commit()
    db.refresh(entity)
    logger.info(
        "Entity %s reviewed: needs_review=%s type=%s",
        entity.id,
        entity.needs_review,
        entity.entity_type,
    )
    return entity
