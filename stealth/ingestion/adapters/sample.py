"""Offline adapter serving a fixed set of representative signals.

Used for local development and tests (INGEST_USE_SAMPLE_ADAPTER=1). Dates are
relative to the time of the fetch so the records survive a lookback window.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta

from stealth.ingestion.base import AdapterConfig
from stealth.schemas.ingestion import ConnectorResult
from stealth.schemas.signal import RawSignal, SignalType

SAMPLE_RECORDS: tuple[dict, ...] = (
    {
        "source_id": "ARENA-2024-0421",
        "title": "ARENA Grant: Advanced Biofuel Demonstration Plant",
        "description": "Demonstration of SAF production from tallow and used cooking oil",
        "source_url": "https://arena.gov.au/projects/advanced-biofuel-demonstration-plant/",
        "days_ago": 12,
        "entity_name": "BioEnergy Holdings Pty Ltd",
        "signal_type": SignalType.GRANT_ANNOUNCEMENT,
        "signal_weight": 6.0,
        "confidence": 0.95,
        "identifiers": {"abn": "51 824 753 556"},
    },
    {
        "source_id": "ARENA-2024-0398",
        "title": "ARENA Grant: Renewable Diesel from Waste Streams",
        "description": "Scale-up of HVO production using agricultural waste and tallow",
        "source_url": "https://arena.gov.au/projects/renewable-diesel-waste-streams/",
        "days_ago": 20,
        "entity_name": "Southern Oil Refining Pty Ltd",
        "signal_type": SignalType.GRANT_ANNOUNCEMENT,
        "signal_weight": 5.5,
        "confidence": 0.95,
    },
    {
        "source_id": "ERA-2024-QLD-0867",
        "title": "QLD ERA: Rockhampton Collection Depot",
        "description": "Storage of waste oils and fats as feedstock for renewable diesel",
        "source_url": "https://apps.des.qld.gov.au/era-search/?application=ERA-2024-QLD-0867",
        "days_ago": 5,
        "entity_name": "Southern Oil Refining Limited",
        "signal_type": SignalType.ENVIRONMENTAL_APPROVAL,
        "signal_weight": 4.0,
        "confidence": 0.9,
    },
    {
        "source_id": "ERA-2024-QLD-0845",
        "title": "QLD ERA: Toowoomba Oilseed Processing",
        "description": "Fuel burning associated with canola oil extraction for biodiesel",
        "source_url": "https://apps.des.qld.gov.au/era-search/?application=ERA-2024-QLD-0845",
        "days_ago": 8,
        "entity_name": "Queensland Canola Collective",
        "signal_type": SignalType.ENVIRONMENTAL_APPROVAL,
        "signal_weight": 4.0,
        "confidence": 0.9,
    },
    {
        "source_id": "ERA-2024-QLD-0923",
        "title": "QLD ERA: Cairns UCO Collection Hub",
        "description": "Processing of used cooking oil for biofuel feedstock preparation",
        "source_url": "https://apps.des.qld.gov.au/era-search/?application=ERA-2024-QLD-0923",
        "days_ago": 3,
        "entity_name": "North QLD Tallow Processors",
        "signal_type": SignalType.ENVIRONMENTAL_APPROVAL,
        "signal_weight": 3.5,
        "confidence": 0.9,
    },
    {
        "source_id": "AU-2024203456",
        "title": "Patent: Process for Producing Renewable Diesel from Waste Oils",
        "description": "Hydrotreating process for converting waste oils into renewable diesel",
        "source_url": "https://pericles.ipaustralia.gov.au/ols/auspat/applicationDetails.do?applicationNo=2024203456",
        "days_ago": 15,
        "entity_name": "Southern Oil Refining Pty Ltd",
        "signal_type": SignalType.PATENT_BIOFUEL_TECH,
        "signal_weight": 5.0,
        "confidence": 0.95,
        "identifiers": {"patent_id": "2024203456"},
    },
    {
        "source_id": "AU-2024205678",
        "title": "Patent: Catalytic Conversion of UCO to Biodiesel",
        "description": "Heterogeneous catalyst for transesterification of used cooking oil",
        "source_url": "https://pericles.ipaustralia.gov.au/ols/auspat/applicationDetails.do?applicationNo=2024205678",
        "days_ago": 2,
        "entity_name": "BioEnergy Holdings Ltd",
        "signal_type": SignalType.PATENT_BIOFUEL_TECH,
        "signal_weight": 4.0,
        "confidence": 0.95,
        "identifiers": {"abn": "51824753556", "patent_id": "2024205678"},
    },
    {
        "source_id": "CEFC-jet-zero-saf",
        "title": "CEFC Investment: Jet Zero Australia SAF facility",
        "description": "CEFC commits equity to a sustainable aviation fuel facility in Queensland",
        "source_url": "https://www.cefc.com.au/media/media-release/jet-zero-saf/",
        "days_ago": 9,
        "entity_name": "Jet Zero Australia Pty Ltd",
        "signal_type": SignalType.INVESTMENT_DISCLOSURE,
        "signal_weight": 7.5,
        "confidence": 0.98,
    },
    {
        "source_id": "SSD-2024-0127",
        "title": "Parkes Renewable Diesel Facility",
        "description": "Construction of a 400 million litre per annum renewable diesel facility",
        "source_url": "https://www.planningportal.nsw.gov.au/major-projects/projects/ssd-2024-0127",
        "days_ago": 25,
        "entity_name": "Parkes Renewable Fuels Joint Venture",
        "signal_type": SignalType.PLANNING_APPLICATION,
        "signal_weight": 5.0,
        "confidence": 0.9,
        "identifiers": {"permit_id": "SSD-2024-0127"},
    },
)


class SampleAdapter:
    """Adapter protocol implementation without network access."""

    def __init__(self, config: AdapterConfig, records: tuple[dict, ...] = SAMPLE_RECORDS) -> None:
        self.config = config
        self.name = config.name
        self.records = records

    async def fetch_signals(self, since: datetime | None) -> ConnectorResult:
        start = time.perf_counter()
        now = datetime.now(UTC)
        signals: list[RawSignal] = []
        for record in self.records:
            fields = {k: v for k, v in record.items() if k != "days_ago"}
            detected_at = now - timedelta(days=record.get("days_ago", 0))
            if since is not None and detected_at < since:
                continue
            signals.append(RawSignal(detected_at=detected_at, **fields))
        return ConnectorResult(
            success=True,
            signals_discovered=len(signals),
            signals=signals,
            errors=[],
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
