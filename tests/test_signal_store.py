"""Tests for signal storage, entity rollups and manual merge."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from stealth.models.entity import StealthEntity
from stealth.models.entity_alias import StealthEntityAlias
from stealth.models.entity_identifier import StealthEntityIdentifier
from stealth.models.stealth_signal import StealthSignal
from stealth.services.entity_resolver import EntityNotFoundError, merge_entities
from stealth.services.signal_store import append_signal, process_signals, signal_exists
from tests.factories import make_signal


def _entity_named(db: Session, name: str) -> StealthEntity:
    return db.query(StealthEntity).filter(StealthEntity.canonical_name == name).one()


class TestProcessSignals:
    def test_stores_signal_with_source_payload(self, db: Session) -> None:
        signal = make_signal("Jet Zero Australia Pty Ltd", source_id="CEFC-jet-zero")
        result = process_signals(db, [signal], "cefc")

        assert result.signals_stored == 1
        assert result.entities_created == 1
        assert result.entities_updated == 0
        record = db.query(StealthSignal).one()
        assert record.source == "cefc"
        assert record.source_id == "CEFC-jet-zero"
        assert record.raw_data["sourceId"] == "CEFC-jet-zero"
        assert record.raw_data["sourceUrl"] == "https://example.com/signal"
        assert record.raw_data["entityName"] == "Jet Zero Australia Pty Ltd"

    def test_rollup_counts_and_last_signal_at(self, db: Session) -> None:
        newer = datetime.now(UTC) - timedelta(days=1)
        older = datetime.now(UTC) - timedelta(days=10)
        process_signals(
            db,
            [
                make_signal("Southern Oil Refining Pty Ltd", detected_at=newer),
                make_signal("Southern Oil Refining Limited", detected_at=older),
            ],
            "arena",
        )

        entity = db.query(StealthEntity).one()
        assert entity.signal_count == 2
        assert entity.last_signal_at.replace(tzinfo=UTC) == newer

    def test_signal_count_matches_records(self, db: Session) -> None:
        process_signals(
            db,
            [make_signal("Jet Zero"), make_signal("Jet Zero"), make_signal("Parkes Fuels")],
            "sample",
        )
        for entity in db.query(StealthEntity).all():
            records = db.query(StealthSignal).filter(StealthSignal.entity_id == entity.id).count()
            assert entity.signal_count == records

    def test_duplicate_source_id_skipped(self, db: Session) -> None:
        signal = make_signal("Jet Zero Australia", source_id="DUP-1")
        process_signals(db, [signal], "cefc")
        result = process_signals(db, [signal], "cefc")

        assert result.signals_stored == 0
        assert result.signals_skipped == 1
        assert db.query(StealthSignal).count() == 1
        assert db.query(StealthEntity).one().signal_count == 1
        assert signal_exists(db, "cefc", "DUP-1")
        assert not signal_exists(db, "arena", "DUP-1")

    def test_existing_entity_counted_as_updated(self, db: Session) -> None:
        process_signals(db, [make_signal("Jet Zero Australia")], "cefc")
        result = process_signals(db, [make_signal("Jet Zero Australia Pty Ltd")], "arena")

        assert result.entities_created == 0
        assert result.entities_updated == 1

    def test_failing_signal_recorded_and_batch_continues(self, db: Session) -> None:
        signals = [
            make_signal("Bad ABN Holdings", source_id="BAD-1", identifiers={"abn": "123"}),
            make_signal("Good Fuels Pty Ltd", source_id="OK-1"),
        ]
        result = process_signals(db, signals, "qld_epa")

        assert result.signals_stored == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("qld_epa:BAD-1: ")
        assert db.query(StealthEntity).one().canonical_name == "Good Fuels Pty Ltd"

    def test_store_failure_rolls_back_that_signal_only(self, db: Session) -> None:
        real_append = append_signal
        calls = []

        def flaky_append(db, entity, signal, source):
            calls.append(signal.source_id)
            if len(calls) == 1:
                raise RuntimeError("disk full")
            return real_append(db, entity, signal, source)

        signals = [
            make_signal("First Fuels", source_id="A"),
            make_signal("Second Fuels", source_id="B"),
        ]
        with patch("stealth.services.signal_store.append_signal", side_effect=flaky_append):
            result = process_signals(db, signals, "arena")

        assert result.errors == ["arena:A: disk full"]
        assert result.signals_stored == 1
        assert db.query(StealthEntity).one().canonical_name == "Second Fuels"


class TestMergeEntities:
    def _two_entities(self, db: Session) -> tuple[int, int]:
        process_signals(
            db,
            [
                make_signal("Southern Oil Refining", identifiers={"abn": "11111111111"}, days_ago=5),
                make_signal("Southern Oil Refining", days_ago=3),
                make_signal("SOR Renewables", identifiers={"acn": "123456789"}, days_ago=1),
            ],
            "arena",
        )
        primary = _entity_named(db, "Southern Oil Refining")
        duplicate = _entity_named(db, "SOR Renewables")
        return primary.id, duplicate.id

    def test_merge_folds_duplicate_into_primary(self, db: Session) -> None:
        primary_id, duplicate_id = self._two_entities(db)
        total_signals = db.query(StealthSignal).count()

        merged = merge_entities(db, primary_id, duplicate_id)

        assert merged.id == primary_id
        assert merged.signal_count == 3
        assert set(merged.all_names) == {"Southern Oil Refining", "SOR Renewables"}
        assert merged.identifier_map == {"abn": "11111111111", "acn": "123456789"}
        assert db.get(StealthEntity, duplicate_id) is None
        assert db.query(StealthSignal).count() == total_signals
        assert db.query(StealthSignal).filter(StealthSignal.entity_id == duplicate_id).count() == 0
        assert db.query(StealthEntityAlias).filter(StealthEntityAlias.entity_id == duplicate_id).count() == 0
        assert (
            db.query(StealthEntityIdentifier)
            .filter(StealthEntityIdentifier.entity_id == duplicate_id)
            .count()
            == 0
        )
        assert merged.current_score > 0

    def test_merge_takes_latest_signal_time(self, db: Session) -> None:
        primary_id, duplicate_id = self._two_entities(db)
        duplicate_last = db.get(StealthEntity, duplicate_id).last_signal_at

        merged = merge_entities(db, primary_id, duplicate_id)
        assert merged.last_signal_at == duplicate_last

    def test_primary_identifier_wins_per_type(self, db: Session) -> None:
        process_signals(
            db,
            [
                make_signal("Alpha Fuels", identifiers={"abn": "11111111111"}),
                make_signal("Beta Biodiesel", identifiers={"abn": "22222222222"}),
            ],
            "arena",
        )
        primary = _entity_named(db, "Alpha Fuels")
        duplicate = _entity_named(db, "Beta Biodiesel")

        merged = merge_entities(db, primary.id, duplicate.id)
        assert merged.identifier_map == {"abn": "11111111111"}

    def test_merge_into_self_rejected(self, db: Session) -> None:
        primary_id, _ = self._two_entities(db)
        with pytest.raises(ValueError):
            merge_entities(db, primary_id, primary_id)

    def test_merge_missing_entity(self, db: Session) -> None:
        primary_id, _ = self._two_entities(db)
        with pytest.raises(EntityNotFoundError):
            merge_entities(db, primary_id, 9999)
        with pytest.raises(EntityNotFoundError):
            merge_entities(db, 9999, primary_id)
        assert db.query(StealthEntity).count() == 2
