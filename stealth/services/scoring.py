"""Scoring engine: likelihood of undisclosed activity per entity, 0-100.

score = 100 * (1 - exp(-k * sum(weight * confidence * recency)))
recency = 0.5 ** (age_days / (half_life_months * DAYS_PER_MONTH))

Ages are whole days relative to ``as_of`` (default: today, UTC), so repeated
recalculation within a day yields identical scores. Future-dated signals
count as age 0. Adding a positive-weight signal never lowers the score.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from stealth.config import get_settings
from stealth.models.entity import StealthEntity
from stealth.models.stealth_signal import StealthSignal
from stealth.schemas.entity import (
    DashboardStats,
    ScoringBreakdown,
    SignalContribution,
    SignalTypeBucket,
    SignalTypeCount,
)

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30.4375
MAX_SCORE = 100.0
SCORE_PRECISION = 2


class ScoringConfigError(ValueError):
    """Raised when scoring coefficients are out of range."""


@dataclass(frozen=True)
class ScoringParams:
    k: float = 0.1
    half_life_months: float = 6.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.k) or self.k <= 0:
            raise ScoringConfigError(f"k must be a positive number, got {self.k}")
        if not math.isfinite(self.half_life_months) or self.half_life_months <= 0:
            raise ScoringConfigError(
                f"half_life_months must be a positive number, got {self.half_life_months}"
            )

    @classmethod
    def from_settings(cls) -> ScoringParams:
        settings = get_settings()
        return cls(k=settings.scoring_k, half_life_months=settings.scoring_half_life_months)


def _ensure_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def _today() -> date:
    return datetime.now(UTC).date()


# ── Pure computation ────────────────────────────────────────────────


def recency_factor(detected_at: datetime, as_of: date, half_life_months: float) -> float:
    """Exponential half-life decay on whole-day age; future dates decay nothing."""
    age_days = max((as_of - _ensure_utc(detected_at).date()).days, 0)
    return 0.5 ** (age_days / (half_life_months * DAYS_PER_MONTH))


def signal_contribution(
    weight: float, confidence: float, detected_at: datetime, as_of: date, params: ScoringParams
) -> float:
    weight = max(weight or 0.0, 0.0)
    confidence = min(max(confidence or 0.0, 0.0), 1.0)
    return weight * confidence * recency_factor(detected_at, as_of, params.half_life_months)


def score_from_sum(raw_sum: float, params: ScoringParams) -> float:
    score = MAX_SCORE * (1.0 - math.exp(-params.k * max(raw_sum, 0.0)))
    return round(min(max(score, 0.0), MAX_SCORE), SCORE_PRECISION)


def compute_score(
    signals: Iterable[StealthSignal],
    params: ScoringParams | None = None,
    as_of: date | None = None,
) -> float:
    """Score for a set of signal records. Empty set scores 0."""
    params = params or ScoringParams.from_settings()
    as_of = as_of or _today()
    raw_sum = sum(
        signal_contribution(s.signal_weight, s.confidence, s.detected_at, as_of, params)
        for s in signals
    )
    return score_from_sum(raw_sum, params)


# ── Persistence ─────────────────────────────────────────────────────


def update_entity_score(
    db: Session,
    entity_id: int,
    params: ScoringParams | None = None,
    as_of: date | None = None,
) -> float | None:
    """Recompute and store one entity's score. Returns None if the entity is gone."""
    entity = db.get(StealthEntity, entity_id)
    if entity is None:
        logger.warning("Score update skipped: entity %s not found", entity_id)
        return None
    signals = db.query(StealthSignal).filter(StealthSignal.entity_id == entity_id).all()
    entity.current_score = compute_score(signals, params, as_of)
    db.commit()
    return entity.current_score


def recalculate_all_scores(
    db: Session, params: ScoringParams | None = None, as_of: date | None = None
) -> dict:
    """Recompute every entity's score. Idempotent for a fixed ``as_of``."""
    params = params or ScoringParams.from_settings()
    as_of = as_of or _today()

    sums: dict[int, float] = {}
    for entity_id, weight, confidence, detected_at in db.query(
        StealthSignal.entity_id,
        StealthSignal.signal_weight,
        StealthSignal.confidence,
        StealthSignal.detected_at,
    ):
        sums[entity_id] = sums.get(entity_id, 0.0) + signal_contribution(
            weight, confidence, detected_at, as_of, params
        )

    updated = 0
    for entity in db.query(StealthEntity).all():
        score = score_from_sum(sums.get(entity.id, 0.0), params)
        if entity.current_score != score:
            entity.current_score = score
            updated += 1
    db.commit()
    logger.info("Scores recalculated: %d changed (as_of=%s)", updated, as_of)
    return {"updated": updated, "as_of": as_of.isoformat()}


# ── Queries ─────────────────────────────────────────────────────────


def get_entity_scoring_breakdown(
    db: Session,
    entity_id: int,
    params: ScoringParams | None = None,
    as_of: date | None = None,
) -> ScoringBreakdown | None:
    """Per-signal and per-type contributions behind an entity's score."""
    entity = db.get(StealthEntity, entity_id)
    if entity is None:
        return None
    params = params or ScoringParams.from_settings()
    as_of = as_of or _today()

    signals = (
        db.query(StealthSignal)
        .filter(StealthSignal.entity_id == entity_id)
        .order_by(StealthSignal.detected_at.desc(), StealthSignal.id.desc())
        .all()
    )
    contributions: list[SignalContribution] = []
    buckets: dict[str, list[float]] = {}
    for s in signals:
        value = signal_contribution(s.signal_weight, s.confidence, s.detected_at, as_of, params)
        contributions.append(
            SignalContribution(
                signal_id=s.id,
                signal_type=s.signal_type,
                title=s.title,
                source=s.source,
                detected_at=s.detected_at,
                signal_weight=s.signal_weight,
                confidence=s.confidence,
                recency=round(recency_factor(s.detected_at, as_of, params.half_life_months), 4),
                contribution=round(value, 4),
            )
        )
        buckets.setdefault(s.signal_type, []).append(value)

    raw_sum = sum(sum(values) for values in buckets.values())
    computed = score_from_sum(raw_sum, params)
    by_type = [
        SignalTypeBucket(
            signal_type=signal_type,
            count=len(values),
            contribution=round(sum(values), 4),
            score_share=round(computed * sum(values) / raw_sum, SCORE_PRECISION)
            if raw_sum > 0
            else 0.0,
        )
        for signal_type, values in buckets.items()
    ]
    by_type.sort(key=lambda b: b.contribution, reverse=True)

    return ScoringBreakdown(
        entity_id=entity.id,
        canonical_name=entity.canonical_name,
        current_score=entity.current_score,
        computed_score=computed,
        raw_sum=round(raw_sum, 4),
        k=params.k,
        half_life_months=params.half_life_months,
        as_of=datetime.combine(as_of, time.min, tzinfo=UTC),
        by_type=by_type,
        signals=contributions,
    )


def get_high_scoring_entities(
    db: Session, min_score: float | None = None, limit: int = 20
) -> list[StealthEntity]:
    threshold = get_settings().high_score_threshold if min_score is None else min_score
    return (
        db.query(StealthEntity)
        .filter(StealthEntity.current_score >= threshold)
        .order_by(StealthEntity.current_score.desc(), StealthEntity.id)
        .limit(limit)
        .all()
    )


def get_dashboard_stats(db: Session, now: datetime | None = None) -> DashboardStats:
    now = _ensure_utc(now) or datetime.now(UTC)
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=UTC)
    week_ago = now - timedelta(days=7)
    threshold = get_settings().high_score_threshold

    def _signals_since(cutoff: datetime) -> int:
        # Stored timestamps are naive UTC
        naive = cutoff.replace(tzinfo=None)
        return db.query(StealthSignal).filter(StealthSignal.detected_at >= naive).count()

    type_rows = (
        db.query(StealthSignal.signal_type, func.count(StealthSignal.id).label("n"))
        .group_by(StealthSignal.signal_type)
        .order_by(func.count(StealthSignal.id).desc(), StealthSignal.signal_type)
        .limit(5)
        .all()
    )

    return DashboardStats(
        total_entities=db.query(StealthEntity).count(),
        high_score_entities=db.query(StealthEntity)
        .filter(StealthEntity.current_score >= threshold)
        .count(),
        needs_review_entities=db.query(StealthEntity)
        .filter(StealthEntity.needs_review.is_(True))
        .count(),
        total_signals=db.query(StealthSignal).count(),
        new_signals_today=_signals_since(start_of_day),
        new_signals_week=_signals_since(week_ago),
        top_signal_types=[
            SignalTypeCount(signal_type=signal_type, count=n) for signal_type, n in type_rows
        ],
    )
