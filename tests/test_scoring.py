"""Tests for the scoring engine: formula, recency, idempotence, breakdown, dashboard."""

from __future__ import annotations

import math
from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from stealth.models.entity import StealthEntity
from stealth.schemas.signal import SignalType
from stealth.services.scoring import (
    DAYS_PER_MONTH,
    ScoringConfigError,
    ScoringParams,
    compute_score,
    get_dashboard_stats,
    get_entity_scoring_breakdown,
    get_high_scoring_entities,
    recalculate_all_scores,
    recency_factor,
    score_from_sum,
    signal_contribution,
    update_entity_score,
)
from stealth.services.signal_store import process_signals
from tests.factories import make_signal

AS_OF = date(2026, 6, 30)
PARAMS = ScoringParams(k=0.1, half_life_months=6.0)


def _at(days_before: int) -> datetime:
    return datetime(2026, 6, 30, 12, 0, tzinfo=UTC) - timedelta(days=days_before)


class TestFormula:
    def test_empty_sum_scores_zero(self) -> None:
        assert score_from_sum(0.0, PARAMS) == 0.0
        assert compute_score([], PARAMS, AS_OF) == 0.0

    def test_known_value(self) -> None:
        # weight 5 x confidence 0.9 today: 100 * (1 - e^-0.45)
        value = signal_contribution(5.0, 0.9, _at(0), AS_OF, PARAMS)
        assert value == pytest.approx(4.5)
        assert score_from_sum(value, PARAMS) == round(100 * (1 - math.exp(-0.45)), 2)

    def test_score_bounded(self) -> None:
        assert score_from_sum(1e9, PARAMS) == 100.0
        assert score_from_sum(-5.0, PARAMS) == 0.0

    def test_half_life(self) -> None:
        half_life_days = 6.0 * DAYS_PER_MONTH
        detected = datetime.combine(AS_OF, datetime.min.time(), tzinfo=UTC) - timedelta(
            days=round(half_life_days)
        )
        factor = recency_factor(detected, AS_OF, 6.0)
        assert factor == pytest.approx(0.5 ** (round(half_life_days) / half_life_days))
        assert factor == pytest.approx(0.5, abs=0.01)

    def test_future_signal_counts_as_today(self) -> None:
        assert recency_factor(_at(-10), AS_OF, 6.0) == 1.0

    def test_naive_datetime_treated_as_utc(self) -> None:
        aware = _at(30)
        assert recency_factor(aware.replace(tzinfo=None), AS_OF, 6.0) == recency_factor(
            aware, AS_OF, 6.0
        )

    def test_weight_and_confidence_clamped(self) -> None:
        assert signal_contribution(-3.0, 0.9, _at(0), AS_OF, PARAMS) == 0.0
        assert signal_contribution(2.0, 1.7, _at(0), AS_OF, PARAMS) == pytest.approx(2.0)

    def test_more_signals_never_decrease_score(self) -> None:
        raw = 0.0
        previous = 0.0
        for days in (400, 200, 30, 1):
            raw += signal_contribution(1.0, 0.5, _at(days), AS_OF, PARAMS)
            score = score_from_sum(raw, PARAMS)
            assert score >= previous
            previous = score

    @pytest.mark.parametrize(("k", "half_life"), [(0, 6), (-0.1, 6), (0.1, 0), (0.1, float("nan"))])
    def test_invalid_params_rejected(self, k: float, half_life: float) -> None:
        with pytest.raises(ScoringConfigError):
            ScoringParams(k=k, half_life_months=half_life)

    def test_params_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from stealth.config import get_settings

        monkeypatch.setenv("SCORING_K", "0.2")
        monkeypatch.setenv("SCORING_HALF_LIFE_MONTHS", "3")
        get_settings.cache_clear()

        params = ScoringParams.from_settings()
        assert params == ScoringParams(k=0.2, half_life_months=3.0)


class TestPersistence:
    def _seed(self, db: Session) -> None:
        process_signals(
            db,
            [
                make_signal("Southern Oil Refining Pty Ltd", signal_weight=6.0, confidence=0.95, days_ago=5),
                make_signal("Southern Oil Refining Limited", signal_weight=4.0, confidence=0.9, days_ago=60),
                make_signal(
                    "Jet Zero Australia",
                    signal_type=SignalType.INVESTMENT_DISCLOSURE,
                    signal_weight=2.0,
                    confidence=0.98,
                    days_ago=200,
                ),
            ],
            "sample",
        )

    def test_update_entity_score(self, db: Session) -> None:
        self._seed(db)
        entity = db.query(StealthEntity).filter(StealthEntity.canonical_name.like("Southern%")).one()

        score = update_entity_score(db, entity.id)
        assert score is not None and 0 < score <= 100
        assert entity.current_score == score

    def test_update_missing_entity_returns_none(self, db: Session) -> None:
        assert update_entity_score(db, 424242) is None

    def test_recalculate_is_idempotent(self, db: Session) -> None:
        self._seed(db)
        first = recalculate_all_scores(db, as_of=AS_OF)
        scores = {e.id: e.current_score for e in db.query(StealthEntity).all()}
        second = recalculate_all_scores(db, as_of=AS_OF)

        assert first["updated"] == 2
        assert second["updated"] == 0
        assert scores == {e.id: e.current_score for e in db.query(StealthEntity).all()}

    def test_recalculate_matches_incremental(self, db: Session) -> None:
        self._seed(db)
        today = datetime.now(UTC).date()
        recalculate_all_scores(db, as_of=today)
        batch = {e.id: e.current_score for e in db.query(StealthEntity).all()}
        for entity_id in batch:
            update_entity_score(db, entity_id, as_of=today)
        assert batch == {e.id: e.current_score for e in db.query(StealthEntity).all()}

    def test_breakdown(self, db: Session) -> None:
        self._seed(db)
        entity = db.query(StealthEntity).filter(StealthEntity.canonical_name.like("Southern%")).one()
        update_entity_score(db, entity.id)

        breakdown = get_entity_scoring_breakdown(db, entity.id)
        assert breakdown is not None
        assert breakdown.computed_score == entity.current_score
        assert len(breakdown.signals) == 2
        assert breakdown.signals[0].detected_at >= breakdown.signals[1].detected_at
        assert [b.signal_type for b in breakdown.by_type] == ["grant_announcement"]
        assert breakdown.by_type[0].count == 2
        assert breakdown.by_type[0].score_share == pytest.approx(breakdown.computed_score, abs=0.01)
        assert breakdown.k == 0.1
        assert breakdown.half_life_months == 6.0

    def test_breakdown_missing_entity(self, db: Session) -> None:
        assert get_entity_scoring_breakdown(db, 424242) is None

    def test_high_scoring_entities(self, db: Session) -> None:
        self._seed(db)
        recalculate_all_scores(db)
        scores = sorted((e.current_score for e in db.query(StealthEntity).all()), reverse=True)

        rows = get_high_scoring_entities(db, min_score=0.0, limit=10)
        assert [r.current_score for r in rows] == scores
        assert get_high_scoring_entities(db, min_score=scores[0] + 0.01) == []

    def test_dashboard_stats(self, db: Session) -> None:
        self._seed(db)
        process_signals(db, [make_signal("Pty Ltd")], "sample")

        stats = get_dashboard_stats(db)
        assert stats.total_entities == 3
        assert stats.total_signals == 4
        assert stats.needs_review_entities == 1
        assert stats.new_signals_today == 1
        assert stats.new_signals_week == 2
        assert stats.top_signal_types[0].signal_type == "grant_announcement"
        assert stats.top_signal_types[0].count == 3
