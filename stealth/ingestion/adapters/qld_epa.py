"""Queensland environmental authority (ERA) permits from the open data CKAN datastore."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from stealth.ingestion.base import AdapterConfig, HttpSourceAdapter
from stealth.ingestion.text import contains_biofuel_keywords, parse_date
from stealth.schemas.signal import RawSignal, SignalType

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.data.qld.gov.au/api/3/action"
RESOURCE_ID = "a9658145-87bd-4258-a689-5aec29d49792"
PAGE_SIZE = 500
ERA_SEARCH_URL = "https://apps.des.qld.gov.au/era-search/"
CONFIDENCE = 0.9
BASE_WEIGHT = 2.5
MAX_WEIGHT = 5.0

RELEVANT_TERMS = (
    "chemical storage",
    "fuel burning",
    "fuel storage",
    "petroleum",
    "oil refining",
    "oil processing",
    "oil storage",
    "organic processing",
    "waste treatment",
    "waste processing",
    "rendering",
    "abattoir",
    "meat processing",
    "tallow",
    "cooking oil",
    "oilseed",
    "canola",
    "biomass",
    "power generation",
)

_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d", "%d/%m/%Y")


def _field(record: dict[str, Any], key: str, default: str = "") -> str:
    value = record.get(key)
    return str(value).strip() if value not in (None, "") else default


def is_relevant(record: dict[str, Any]) -> bool:
    text = " ".join(
        _field(record, key)
        for key in ("Activities", "Industry", "Permit Type", "Permit Holder(s)", "Locations")
    ).lower()
    return contains_biofuel_keywords(text) or any(term in text for term in RELEVANT_TERMS)


def calculate_weight(status: str, activities: str, description: str) -> float:
    weight = BASE_WEIGHT
    if status == "Approved":
        weight += 1.0
    text = f"{activities} {description}".lower()
    if "production" in text or "refin" in text:
        weight += 1.0
    if "fuel" in text or "petroleum" in text:
        weight += 0.5
    return min(weight, MAX_WEIGHT)


def record_to_signal(record: dict[str, Any]) -> RawSignal | None:
    """Signal for one datastore record; None when it lacks a reference or holder."""
    reference = _field(record, "Permit Reference") or _field(record, "_id")
    holder = _field(record, "Permit Holder(s)").rstrip(";").strip()
    if not reference or not holder:
        return None
    activities = _field(record, "Activities")
    industry = _field(record, "Industry")
    permit_type = _field(record, "Permit Type")
    status = _field(record, "Status", "Active")
    locations = _field(record, "Locations")
    site = locations.split(";")[0].strip() or None
    description = f"{permit_type} - {industry}: {activities}"

    return RawSignal(
        source_id=reference,
        title=f"QLD ERA: {site or holder}"[:500],
        description=description,
        source_url=f"{ERA_SEARCH_URL}?application={quote(reference)}",
        detected_at=parse_date(_field(record, "Effective Date"), _DATE_FORMATS)
        or datetime.now(UTC),
        entity_name=holder[:500],
        signal_type=SignalType.ENVIRONMENTAL_APPROVAL,
        signal_weight=calculate_weight(status, activities, description),
        confidence=CONFIDENCE,
        identifiers={"permit_id": reference},
        metadata={"state": "QLD", "site_name": site, "address": locations, "status": status},
        raw_data={"permit_reference": reference, "activities": activities, "industry": industry},
    )


class QldEpaAdapter(HttpSourceAdapter):
    """Environmental approvals for fuel, rendering and biomass operations."""

    def __init__(self, config: AdapterConfig) -> None:
        super().__init__(config)
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")

    async def collect(
        self,
        client: httpx.AsyncClient,
        since: datetime | None,
        signals: list[RawSignal],
        errors: list[str],
    ) -> None:
        try:
            response = await self.get(
                client,
                f"{self.base_url}/datastore_search",
                params={"resource_id": RESOURCE_ID, "limit": PAGE_SIZE},
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            errors.append(f"qld_epa: datastore_search: {e}")
            return
        if not payload.get("success"):
            errors.append(f"qld_epa: datastore error: {payload.get('error')}")
            return

        records = (payload.get("result") or {}).get("records") or []
        for record in records:
            if not is_relevant(record):
                continue
            try:
                signal = record_to_signal(record)
            except ValueError as e:
                errors.append(f"qld_epa: {record.get('Permit Reference')}: {e}")
                continue
            if signal is None:
                continue
            if since is not None and signal.detected_at < since:
                continue
            signals.append(signal)
        logger.info("qld_epa: %d of %d records relevant", len(signals), len(records))
