"""API tests: public entity reads and token-protected internal endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from stealth.config import get_settings
from stealth.models.entity import StealthEntity
from stealth.schemas.signal import SignalType
from stealth.services.scoring import recalculate_all_scores
from stealth.services.signal_store import process_signals
from tests.factories import make_signal

JET_ZERO = "Jet Zero Australia Pty Ltd"
PARKES = "Parkes Renewable Fuels Joint Venture"


@pytest.fixture
def seeded(db: Session) -> dict[str, int]:
    """Two entities, three signals, scores computed."""
    process_signals(
        db,
        [
            make_signal(
                JET_ZERO,
                source_id="CEFC-jet-zero",
                signal_type=SignalType.INVESTMENT_DISCLOSURE,
                signal_weight=7.5,
                days_ago=1,
            ),
            make_signal(
                JET_ZERO,
                source_id="ARENA-77",
                identifiers={"abn": "51 824 753 556"},
                days_ago=40,
            ),
            make_signal(
                PARKES,
                source_id="SSD-0127",
                signal_type=SignalType.PLANNING_APPLICATION,
                days_ago=3,
            ),
        ],
        "test",
    )
    recalculate_all_scores(db)
    ids = {e.canonical_name: e.id for e in db.query(StealthEntity).all()}
    return {"jet": ids[JET_ZERO], "parkes": ids[PARKES]}


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.json()["database"] == "connected"


class TestEntities:
    def test_list_ordered_by_score(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get("/api/entities")
        assert r.status_code == 200
        data = r.json()
        assert data["total"] == 2
        assert [item["canonical_name"] for item in data["items"]] == [JET_ZERO, PARKES]
        assert data["items"][0]["current_score"] > data["items"][1]["current_score"]

    def test_list_filters(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get("/api/entities", params={"entity_type": "joint_venture"})
        assert [item["canonical_name"] for item in r.json()["items"]] == [PARKES]

        r = client_with_db.get("/api/entities", params={"search": "jet zero"})
        assert r.json()["total"] == 1

        r = client_with_db.get("/api/entities", params={"limit": 1, "offset": 1})
        assert r.json()["total"] == 2
        assert [item["canonical_name"] for item in r.json()["items"]] == [PARKES]

    def test_list_rejects_bad_params(self, client_with_db: TestClient) -> None:
        assert client_with_db.get("/api/entities", params={"min_score": 101}).status_code == 422
        assert client_with_db.get("/api/entities", params={"entity_type": "person"}).status_code == 422

    def test_search(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get("/api/entities/search", params={"q": "parkes"})
        assert r.status_code == 200
        assert [row["id"] for row in r.json()] == [seeded["parkes"]]

    def test_search_too_short(self, client_with_db: TestClient) -> None:
        assert client_with_db.get("/api/entities/search", params={"q": "j"}).status_code == 422
        r = client_with_db.get("/api/entities/search", params={"q": " j "})
        assert r.status_code == 422
        assert "at least 2 characters" in r.json()["detail"]

    def test_detail(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get(f"/api/entities/{seeded['jet']}")
        assert r.status_code == 200
        data = r.json()
        assert data["canonical_name"] == JET_ZERO
        assert data["all_names"] == [JET_ZERO]
        assert data["identifiers"] == {"abn": "51824753556"}
        assert data["signal_count"] == 2

    def test_entity_signals_newest_first(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get(f"/api/entities/{seeded['jet']}/signals")
        assert r.status_code == 200
        assert [s["source_id"] for s in r.json()] == ["CEFC-jet-zero", "ARENA-77"]

    def test_breakdown(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get(f"/api/entities/{seeded['jet']}/breakdown")
        assert r.status_code == 200
        data = r.json()
        assert data["entity_id"] == seeded["jet"]
        assert len(data["signals"]) == 2
        assert {b["signal_type"] for b in data["by_type"]} == {
            "investment_disclosure",
            "grant_announcement",
        }

    @pytest.mark.parametrize("suffix", ["", "/signals", "/breakdown"])
    def test_missing_entity_404(self, client_with_db: TestClient, suffix: str) -> None:
        r = client_with_db.get(f"/api/entities/999{suffix}")
        assert r.status_code == 404
        assert r.json()["detail"] == "Entity not found"

    def test_high_scoring(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get("/api/entities/high_scoring", params={"min_score": 0})
        assert r.status_code == 200
        assert [row["canonical_name"] for row in r.json()] == [JET_ZERO, PARKES]


class TestSignalsAndDashboard:
    def test_recent_signals(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get("/api/signals/recent", params={"limit": 2})
        assert r.status_code == 200
        rows = r.json()
        assert [row["source_id"] for row in rows] == ["CEFC-jet-zero", "SSD-0127"]
        assert rows[0]["entity_name"] == JET_ZERO
        assert rows[1]["entity_name"] == PARKES

    def test_dashboard(self, client_with_db: TestClient, seeded: dict) -> None:
        r = client_with_db.get("/api/dashboard")
        assert r.status_code == 200
        data = r.json()
        assert data["total_entities"] == 2
        assert data["total_signals"] == 3
        assert data["new_signals_week"] == 2


class TestInternalAuth:
    def test_wrong_token_403(self, client_with_db: TestClient) -> None:
        r = client_with_db.get("/internal/connectors", headers={"X-Internal-Token": "wrong"})
        assert r.status_code == 403

    def test_missing_token_rejected(self, client_with_db: TestClient) -> None:
        r = client_with_db.get("/internal/connectors")
        assert r.status_code == 422

    def test_unconfigured_token_403(
        self, client_with_db: TestClient, internal_headers: dict, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("INTERNAL_JOB_TOKEN", "")
        get_settings.cache_clear()
        r = client_with_db.get("/internal/connectors", headers=internal_headers)
        assert r.status_code == 403


class TestInternalIngestion:
    def test_ingest_all(self, client_with_db: TestClient, internal_headers: dict) -> None:
        r = client_with_db.post("/internal/ingest", json={"since_days": 30}, headers=internal_headers)
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "completed"
        assert data["signals_stored"] == 9
        assert data["entities_created"] == 6

        r = client_with_db.get("/internal/ingestion_jobs", headers=internal_headers)
        assert r.status_code == 200
        jobs = r.json()
        assert len(jobs) == 1
        assert jobs[0]["id"] == data["job_id"]
        assert jobs[0]["connector"] == "all"

    def test_ingest_without_body(self, client_with_db: TestClient, internal_headers: dict) -> None:
        r = client_with_db.post("/internal/ingest", headers=internal_headers)
        assert r.status_code == 200
        assert r.json()["signals_discovered"] == 9

    def test_ingest_unknown_connector_404(
        self, client_with_db: TestClient, internal_headers: dict
    ) -> None:
        r = client_with_db.post("/internal/ingest", json={"connector": "nope"}, headers=internal_headers)
        assert r.status_code == 404
        assert r.json()["detail"] == "Unknown adapter: nope"

    def test_ingest_since_days_validated(
        self, client_with_db: TestClient, internal_headers: dict
    ) -> None:
        r = client_with_db.post("/internal/ingest", json={"since_days": 0}, headers=internal_headers)
        assert r.status_code == 422

    def test_connectors(self, client_with_db: TestClient, internal_headers: dict) -> None:
        r = client_with_db.get("/internal/connectors", headers=internal_headers)
        assert r.status_code == 200
        assert [c["name"] for c in r.json()] == ["sample"]

    def test_recalculate_scores(
        self, client_with_db: TestClient, internal_headers: dict, seeded: dict
    ) -> None:
        r = client_with_db.post("/internal/recalculate_scores", headers=internal_headers)
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "completed"
        assert data["updated"] == 0


class TestInternalReview:
    def test_review_update(
        self, client_with_db: TestClient, internal_headers: dict, seeded: dict
    ) -> None:
        r = client_with_db.patch(
            f"/internal/entities/{seeded['parkes']}/review",
            json={"needs_review": True, "review_notes": "check JV partners", "entity_type": "project"},
            headers=internal_headers,
        )
        assert r.status_code == 200
        data = r.json()
        assert data["needs_review"] is True
        assert data["review_notes"] == "check JV partners"
        assert data["entity_type"] == "project"

    def test_review_missing_entity(self, client_with_db: TestClient, internal_headers: dict) -> None:
        r = client_with_db.patch(
            "/internal/entities/999/review", json={"needs_review": False}, headers=internal_headers
        )
        assert r.status_code == 404

    def test_merge(self, client_with_db: TestClient, internal_headers: dict, seeded: dict) -> None:
        r = client_with_db.post(
            "/internal/entities/merge",
            json={"primary_id": seeded["jet"], "duplicate_id": seeded["parkes"]},
            headers=internal_headers,
        )
        assert r.status_code == 200
        data = r.json()
        assert data["signal_count"] == 3
        assert data["all_names"] == [JET_ZERO, PARKES]
        assert client_with_db.get(f"/api/entities/{seeded['parkes']}").status_code == 404

    def test_merge_errors(self, client_with_db: TestClient, internal_headers: dict, seeded: dict) -> None:
        same = {"primary_id": seeded["jet"], "duplicate_id": seeded["jet"]}
        r = client_with_db.post("/internal/entities/merge", json=same, headers=internal_headers)
        assert r.status_code == 422

        missing = {"primary_id": seeded["jet"], "duplicate_id": 999}
        r = client_with_db.post("/internal/entities/merge", json=missing, headers=internal_headers)
        assert r.status_code == 404
