"""NSW Planning Portal: State Significant Development applications."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from stealth.ingestion.base import AdapterConfig, HttpSourceAdapter
from stealth.ingestion.text import contains_biofuel_keywords, parse_date
from stealth.schemas.signal import RawSignal, SignalType

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.planningportal.nsw.gov.au"
PROJECTS_PATH = "/major-projects/projects"
INDUSTRY_TYPES = ("Energy", "Manufacturing", "Agriculture")
MAX_PAGES = 3
CONFIDENCE = 0.9
BASE_WEIGHT = 3.0
MAX_WEIGHT = 5.0

# Broader fuel/energy terms; the portal's descriptions rarely use biofuel jargon
EXTENDED_TERMS = (
    "renewable fuel",
    "fuel production",
    "fuel depot",
    "fuel storage",
    "fuel terminal",
    "refinery",
    "oil refining",
    "oil processing",
    "hydrogen",
    "waste to energy",
    "waste-to-energy",
    "biogas",
    "biomethane",
    "anaerobic digestion",
    "rendering",
    "animal fats",
    "oilseed",
    "canola processing",
)
# Cheap title filter before fetching a detail page
_TITLE_HINTS = (
    "fuel",
    "energy",
    "hydrogen",
    "processing",
    "refin",
    "renewable",
    "waste",
    "biogas",
    "rendering",
    "tallow",
    "oil",
)

_PROJECT_HREF_RE = re.compile(r"^/major-projects/projects/[a-z0-9-]+$")
_APP_NUMBER_RE = re.compile(r"(ssd|ssi|mp|cssi)-?(\d+)", re.IGNORECASE)


@dataclass
class ProjectListing:
    application_number: str
    title: str
    url: str


@dataclass
class ProjectDetail:
    application_number: str
    title: str
    url: str
    applicant: str
    description: str
    status: str
    lodged: datetime | None


def application_number(slug: str) -> str:
    match = _APP_NUMBER_RE.search(slug)
    return f"{match.group(1).upper()}-{match.group(2)}" if match else slug


def parse_listing(html: str, base_url: str) -> list[ProjectListing]:
    """Project cards: each card has an h3.card__title and a link to the project page."""
    soup = BeautifulSoup(html, "html.parser")
    listings: dict[str, ProjectListing] = {}
    for link in soup.find_all("a", href=_PROJECT_HREF_RE):
        path = link["href"]
        if path in listings:
            continue
        card = link.find_parent(class_=re.compile(r"\bcard\b")) or link.parent
        title_el = card.select_one(".card__title") if card is not None else None
        title = title_el.get_text(" ", strip=True) if title_el else link.get_text(" ", strip=True)
        if not title:
            continue
        slug = path.rsplit("/", 1)[-1]
        listings[path] = ProjectListing(
            application_number=application_number(slug),
            title=title,
            url=urljoin(base_url, path),
        )
    return list(listings.values())


def _labelled_value(soup: BeautifulSoup, *labels: str) -> str:
    """Value for a label such as "Proponent" in a detail page.

    Handles both "Proponent: X" in one text node and a label element followed
    by a value element.
    """
    for label in labels:
        pattern = re.compile(rf"^\s*{label}\s*(?::\s*(.*))?$", re.IGNORECASE | re.DOTALL)
        node = soup.find(string=pattern)
        if node is None:
            continue
        inline = (pattern.match(node).group(1) or "").strip()
        if inline:
            return inline
        value = node.find_next(string=lambda s: bool(s.strip()))
        if value is not None:
            return value.strip()
    return ""


def parse_detail(html: str, listing: ProjectListing) -> ProjectDetail:
    soup = BeautifulSoup(html, "html.parser")
    lodged_raw = _labelled_value(soup, "Lodged", "Lodgement date")
    return ProjectDetail(
        application_number=listing.application_number,
        title=listing.title,
        url=listing.url,
        applicant=_labelled_value(soup, "Proponent", "Applicant"),
        description=_labelled_value(soup, "Description"),
        status=_labelled_value(soup, "Status") or "Unknown",
        lodged=parse_date(lodged_raw, ("%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y")),
    )


def is_relevant(detail: ProjectDetail) -> bool:
    text = f"{detail.title} {detail.description} {detail.applicant}".lower()
    return contains_biofuel_keywords(text) or any(term in text for term in EXTENDED_TERMS)


def determine_signal_type(detail: ProjectDetail) -> SignalType:
    if "environment" in detail.description.lower() or "exhibition" in detail.status.lower():
        return SignalType.ENVIRONMENTAL_APPROVAL
    return SignalType.PLANNING_APPLICATION


def calculate_weight(detail: ProjectDetail) -> float:
    weight = BASE_WEIGHT
    description = detail.description.lower()
    if "renewable diesel" in description or "sustainable aviation fuel" in description:
        weight += 1.5
    if "million litre" in description or "ml per annum" in description:
        weight += 1.0
    status = detail.status.lower()
    if "determination" in status or "approved" in status:
        weight += 1.0
    elif "assessment" in status:
        weight += 0.5
    return min(weight, MAX_WEIGHT)


class NswPlanningAdapter(HttpSourceAdapter):
    """Planning applications and exhibitions for fuel and energy projects."""

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
        seen: set[str] = set()
        for industry in INDUSTRY_TYPES:
            for page in range(MAX_PAGES):
                try:
                    response = await self.get(
                        client,
                        f"{self.base_url}{PROJECTS_PATH}",
                        params={"industry_type": industry, "page": page},
                    )
                except httpx.HTTPError as e:
                    errors.append(f"nsw_planning: {industry} page {page}: {e}")
                    break
                listings = parse_listing(response.text, self.base_url)
                if not listings:
                    break
                for listing in listings:
                    if listing.application_number in seen:
                        continue
                    if not any(hint in listing.title.lower() for hint in _TITLE_HINTS):
                        continue
                    seen.add(listing.application_number)
                    signal = await self._detail_signal(client, listing, since, errors)
                    if signal is not None:
                        signals.append(signal)
        logger.info("nsw_planning: %d relevant applications", len(signals))

    async def _detail_signal(
        self,
        client: httpx.AsyncClient,
        listing: ProjectListing,
        since: datetime | None,
        errors: list[str],
    ) -> RawSignal | None:
        try:
            response = await self.get(client, listing.url)
            detail = parse_detail(response.text, listing)
            if not is_relevant(detail) or not detail.applicant:
                return None
            if since is not None and detail.lodged is not None and detail.lodged < since:
                return None
            return self.to_signal(detail)
        except (httpx.HTTPError, ValueError) as e:
            errors.append(f"nsw_planning: {listing.application_number}: {e}")
            return None

    def to_signal(self, detail: ProjectDetail) -> RawSignal:
        return RawSignal(
            source_id=detail.application_number,
            title=detail.title[:500],
            description=detail.description or None,
            source_url=detail.url,
            detected_at=detail.lodged or datetime.now(UTC),
            entity_name=detail.applicant[:500],
            signal_type=determine_signal_type(detail),
            signal_weight=calculate_weight(detail),
            confidence=CONFIDENCE,
            identifiers={"permit_id": detail.application_number},
            metadata={"status": detail.status},
            raw_data={"application_number": detail.application_number, "status": detail.status},
        )
