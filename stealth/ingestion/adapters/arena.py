"""ARENA (Australian Renewable Energy Agency) funded projects via the WordPress REST API."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from stealth.ingestion.base import AdapterConfig, HttpSourceAdapter
from stealth.ingestion.text import contains_biofuel_keywords, parse_amount, parse_date, strip_html
from stealth.schemas.signal import RawSignal, SignalType

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://arena.gov.au/wp-json/wp/v2"
PER_PAGE = 100
BIOENERGY_TECHNOLOGY_ID = 33
MAX_KEYWORD_PAGES = 3
CONFIDENCE = 0.95
BASE_WEIGHT = 4.0
MAX_WEIGHT = 6.0

_BIOFUEL_TECH_TERMS = ("biofuel", "biodiesel", "saf", "hvo", "renewable diesel", "bioethanol")


def calculate_weight(funding: float | None, status: str | None, technology: str | None) -> float:
    """Grant weight: base plus funding, status and technology bonuses, capped."""
    weight = BASE_WEIGHT
    funding = funding or 0.0
    if funding > 10_000_000:
        weight += 1.5
    elif funding > 5_000_000:
        weight += 1.0
    elif funding > 1_000_000:
        weight += 0.5
    if status == "Active":
        weight += 0.5
    if technology and any(term in technology.lower() for term in _BIOFUEL_TECH_TERMS):
        weight += 0.5
    return min(weight, MAX_WEIGHT)


def _rendered(field: Any) -> str:
    if isinstance(field, dict):
        return strip_html(field.get("rendered"))
    return strip_html(field) if isinstance(field, str) else ""


def _yyyymmdd(value: str | None) -> str | None:
    if not value or len(value) != 8 or not value.isdigit():
        return None
    return f"{value[:4]}-{value[4:6]}-{value[6:]}"


class ArenaAdapter(HttpSourceAdapter):
    """Grant announcements for bioenergy projects.

    Technology taxonomy names are cached on the instance after the first fetch.
    """

    def __init__(self, config: AdapterConfig) -> None:
        super().__init__(config)
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.technology_names: dict[int, str] = {}

    async def _load_technology_names(self, client: httpx.AsyncClient) -> None:
        if self.technology_names:
            return
        try:
            response = await self.get(
                client, f"{self.base_url}/technology", params={"per_page": PER_PAGE}
            )
            for term in response.json():
                self.technology_names[int(term["id"])] = term.get("name", "")
        except (httpx.HTTPError, ValueError, KeyError) as e:
            # Names only decorate signals; continue without them
            logger.warning("arena: technology terms unavailable: %s", e)

    async def _fetch_projects(
        self, client: httpx.AsyncClient, since: datetime | None, **extra: Any
    ) -> list[dict]:
        params: dict[str, Any] = {
            "per_page": PER_PAGE,
            "orderby": "date",
            "order": "desc",
            "status": "publish",
            **extra,
        }
        if since is not None:
            params["after"] = since.strftime("%Y-%m-%dT%H:%M:%S")
        response = await self.get(client, f"{self.base_url}/projects", params=params)
        data = response.json()
        return data if isinstance(data, list) else []

    def is_biofuel_related(self, project: dict) -> bool:
        if BIOENERGY_TECHNOLOGY_ID in (project.get("technology") or []):
            return True
        acf = project.get("acf") or {}
        text = " ".join(
            [
                _rendered(project.get("title")),
                _rendered(project.get("excerpt")),
                strip_html(acf.get("introduction")),
                strip_html(acf.get("summary_heading")),
            ]
        )
        return contains_biofuel_keywords(text)

    async def collect(
        self,
        client: httpx.AsyncClient,
        since: datetime | None,
        signals: list[RawSignal],
        errors: list[str],
    ) -> None:
        await self._load_technology_names(client)

        projects: dict[int, dict] = {}
        try:
            for project in await self._fetch_projects(
                client, since, technology=BIOENERGY_TECHNOLOGY_ID
            ):
                projects.setdefault(project["id"], project)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            errors.append(f"arena: bioenergy projects: {e}")

        for page in range(1, MAX_KEYWORD_PAGES + 1):
            try:
                batch = await self._fetch_projects(client, since, page=page)
            except (httpx.HTTPError, ValueError) as e:
                errors.append(f"arena: projects page {page}: {e}")
                break
            for project in batch:
                if project.get("id") not in projects and self.is_biofuel_related(project):
                    projects[project["id"]] = project
            if len(batch) < PER_PAGE:
                break

        for project in projects.values():
            try:
                signals.append(self.to_signal(project))
            except (KeyError, TypeError, ValueError) as e:
                errors.append(f"arena: project {project.get('id')}: {e}")
        logger.info("arena: %d biofuel projects", len(signals))

    def to_signal(self, project: dict) -> RawSignal:
        acf = project.get("acf") or {}
        technology_ids = project.get("technology") or []
        technology = self.technology_names.get(technology_ids[0]) if technology_ids else None
        funding = parse_amount(acf.get("arena_funding_provided"))
        total_value = parse_amount(acf.get("total_project_value"))
        status = "Active" if project.get("status") == "publish" else project.get("status")
        partners = [
            p.strip() for p in strip_html(acf.get("project_partners")).split(",") if p.strip()
        ]
        name = _rendered(project.get("title")) or f"Project {project['id']}"
        lead = strip_html(acf.get("lead_organisation")) or "Unknown"
        detected = parse_date(project.get("date_gmt") or project.get("date"), ("%Y-%m-%dT%H:%M:%S",))

        return RawSignal(
            source_id=f"ARENA-{project['id']}",
            title=f"ARENA Grant: {name}"[:500],
            description=strip_html(acf.get("introduction")) or _rendered(project.get("excerpt")) or None,
            source_url=project.get("link"),
            detected_at=detected or datetime.now(UTC),
            entity_name=lead,
            signal_type=SignalType.GRANT_ANNOUNCEMENT,
            signal_weight=calculate_weight(funding, status, technology),
            confidence=CONFIDENCE,
            identifiers={},
            metadata={
                "technology": technology,
                "funding_amount": funding,
                "total_project_value": total_value,
                "partners": partners,
                "location": strip_html(acf.get("location")) or None,
            },
            raw_data={
                "project_id": project["id"],
                "status": status,
                "start_date": _yyyymmdd(acf.get("start_date")),
                "end_date": _yyyymmdd(acf.get("end_date")),
            },
        )
