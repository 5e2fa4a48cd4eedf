"""CEFC (Clean Energy Finance Corporation) investment media releases."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from stealth.ingestion.base import AdapterConfig, HttpSourceAdapter
from stealth.ingestion.text import contains_biofuel_keywords, parse_amount, parse_date, strip_html
from stealth.schemas.signal import RawSignal, SignalType

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.cefc.com.au"
MEDIA_PATH = "/media/"
MAX_PAGES = 3
CONFIDENCE = 0.98
BASE_WEIGHT = 5.0
MAX_WEIGHT = 8.0

_DATE_RE = re.compile(r"(\d{1,2} [A-Z][a-z]{2,8} \d{4})")
_ORG_SUFFIX = r"(?:\s+(?:Pty\s+Ltd|Ltd|Limited|Corporation|Corp|Inc))"
_ORG_PATTERNS = (
    re.compile(
        r"CEFC\s+(?:is\s+)?(?:investing|providing|committing)[^,.]*?\s(?:to|in|for)\s+"
        rf"([A-Z][A-Za-z&\s]+?{_ORG_SUFFIX})"
    ),
    re.compile(rf"([A-Z][A-Za-z&\s]+?{_ORG_SUFFIX})\s+(?:will|has|is)\b"),
    re.compile(rf"support(?:ing)?\s+([A-Z][A-Za-z&\s]+?{_ORG_SUFFIX})"),
)
_TITLE_ORG_RE = re.compile(r"(?:backs|supports|invests in)\s+([^|]+)", re.IGNORECASE)

_INVESTMENT_TYPES = (
    ("debt", re.compile(r"\bdebt\b", re.IGNORECASE)),
    ("equity", re.compile(r"\bequity\b", re.IGNORECASE)),
    ("loan", re.compile(r"\bloan\b", re.IGNORECASE)),
    ("guarantee", re.compile(r"\bguarantee\b", re.IGNORECASE)),
)


@dataclass
class MediaRelease:
    title: str
    url: str
    published: datetime | None


def calculate_weight(amount: float | None, investment_type: str | None) -> float:
    weight = BASE_WEIGHT
    amount = amount or 0.0
    if amount > 100_000_000:
        weight += 2.0
    elif amount > 50_000_000:
        weight += 1.5
    elif amount > 20_000_000:
        weight += 1.0
    if investment_type == "equity":
        weight += 0.5
    return min(weight, MAX_WEIGHT)


def parse_listing(html: str, base_url: str) -> list[MediaRelease]:
    """Media release cards from a listing page."""
    soup = BeautifulSoup(html, "html.parser")
    releases: list[MediaRelease] = []
    for item in soup.select("a.listing__item"):
        href = item.get("href") or ""
        if "/media/media-release/" not in href:
            continue
        title_el = item.select_one(".listing__title")
        if title_el is None:
            continue
        published = None
        tags_el = item.select_one(".listing__tags")
        if tags_el is not None:
            match = _DATE_RE.search(tags_el.get_text(" ", strip=True))
            if match:
                published = parse_date(match.group(1), ("%d %b %Y", "%d %B %Y"))
        releases.append(
            MediaRelease(
                title=title_el.get_text(" ", strip=True),
                url=urljoin(base_url, href),
                published=published,
            )
        )
    return releases


def extract_organisation(text: str, title: str) -> str | None:
    for pattern in _ORG_PATTERNS:
        match = pattern.search(text)
        if match:
            return re.sub(r"\s+", " ", match.group(1)).strip()
    match = _TITLE_ORG_RE.search(title)
    if match:
        return match.group(1).strip()
    return None


def investment_type(text: str) -> str | None:
    for name, pattern in _INVESTMENT_TYPES:
        if pattern.search(text):
            return name
    return None


class CefcAdapter(HttpSourceAdapter):
    """Investment disclosures scraped from CEFC media releases."""

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
        releases: dict[str, MediaRelease] = {}
        for page in range(1, MAX_PAGES + 1):
            params = {"page": page} if page > 1 else None
            try:
                response = await self.get(client, f"{self.base_url}{MEDIA_PATH}", params=params)
            except httpx.HTTPError as e:
                errors.append(f"cefc: media page {page}: {e}")
                break
            for release in parse_listing(response.text, self.base_url):
                releases.setdefault(release.url, release)

        for release in releases.values():
            if since is not None and release.published is not None and release.published < since:
                continue
            try:
                response = await self.get(client, release.url)
                signal = self.to_signal(release, response.text)
            except (httpx.HTTPError, ValueError) as e:
                errors.append(f"cefc: {release.url}: {e}")
                continue
            if signal is not None:
                signals.append(signal)
        logger.info("cefc: %d releases, %d biofuel investments", len(releases), len(signals))

    def to_signal(self, release: MediaRelease, page_html: str) -> RawSignal | None:
        """Signal for a biofuel-related release; None when unrelated or no organisation."""
        soup = BeautifulSoup(page_html, "html.parser")
        article = soup.find("article")
        text = strip_html(str(article) if article is not None else page_html)
        if not contains_biofuel_keywords(f"{release.title} {text}"):
            return None
        organisation = extract_organisation(text, release.title)
        if not organisation:
            logger.debug("cefc: no organisation found in %s", release.url)
            return None

        amount = parse_amount(text)
        kind = investment_type(text)
        slug = release.url.rstrip("/").rsplit("/", 1)[-1]
        return RawSignal(
            source_id=f"CEFC-{slug}",
            title=f"CEFC Investment: {release.title}"[:500],
            description=text[:1000] or None,
            source_url=release.url,
            detected_at=release.published or datetime.now(UTC),
            entity_name=organisation[:500],
            signal_type=SignalType.INVESTMENT_DISCLOSURE,
            signal_weight=calculate_weight(amount, kind),
            confidence=CONFIDENCE,
            metadata={"investment_amount": amount, "investment_type": kind},
            raw_data={"slug": slug, "title": release.title},
        )
