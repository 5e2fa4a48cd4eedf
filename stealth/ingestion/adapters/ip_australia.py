"""IP Australia patent search API (OAuth 2.0 client credentials)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from stealth.config import get_settings
from stealth.ingestion.base import AdapterConfig, HttpSourceAdapter
from stealth.ingestion.text import contains_biofuel_keywords, parse_date
from stealth.schemas.signal import RawSignal, SignalType

logger = logging.getLogger(__name__)

PRODUCTION_BASE_URL = (
    "https://production.api.ipaustralia.gov.au/public/australian-patent-search-api/v1"
)
PRODUCTION_TOKEN_URL = (
    "https://production.api.ipaustralia.gov.au/public/external-token-api/v1/access_token"
)
TEST_BASE_URL = "https://test.api.ipaustralia.gov.au/public/australian-patent-search-api/v1"
TEST_TOKEN_URL = "https://test.api.ipaustralia.gov.au/public/external-token-api/v1/access_token"
DETAILS_URL = "https://pericles.ipaustralia.gov.au/ols/auspat/applicationDetails.do?applicationNo="

PAGE_SIZE = 50
TOKEN_EXPIRY_MARGIN = 300  # seconds
CONFIDENCE = 0.95
BASE_WEIGHT = 3.0
MAX_WEIGHT = 6.0

SEARCH_KEYWORDS = (
    "biofuel",
    "biodiesel",
    "renewable diesel",
    "sustainable aviation fuel",
    "hydrotreated vegetable oil",
    "bioethanol",
    "used cooking oil fuel",
    "tallow fuel",
    "fatty acid methyl ester",
)
BIOFUEL_IPC_CLASSES = ("C10L", "C10G", "C10B", "C10K", "C12P", "C11C", "C07C", "B01J")
CORE_IPC_CLASSES = ("C10L", "C10G")
CORE_BIOFUEL_TERMS = (
    "biodiesel",
    "renewable diesel",
    "sustainable aviation fuel",
    "saf",
    "hvo",
    "biofuel production",
)


class MissingCredentialsError(RuntimeError):
    """Raised when IPA_CLIENT_ID / IPA_CLIENT_SECRET are not configured."""


def is_biofuel_related(patent: dict[str, Any]) -> bool:
    if any(ipc.startswith(BIOFUEL_IPC_CLASSES) for ipc in patent.get("ipcCodes") or []):
        return True
    return contains_biofuel_keywords(f"{patent.get('title') or ''} {patent.get('abstract') or ''}")


def determine_signal_type(title: str, abstract: str) -> SignalType:
    text = f"{title} {abstract}".lower()
    if any(term in text for term in CORE_BIOFUEL_TERMS):
        return SignalType.PATENT_BIOFUEL_TECH
    return SignalType.PATENT_FILING


def calculate_weight(patent: dict[str, Any]) -> float:
    weight = BASE_WEIGHT
    status = patent.get("status") or ""
    if status in ("Granted", "Sealed"):
        weight += 2.0
    elif status in ("Published", "Accepted"):
        weight += 1.0
    if any(ipc.startswith(CORE_IPC_CLASSES) for ipc in patent.get("ipcCodes") or []):
        weight += 1.0
    if len(patent.get("abstract") or "") > 200:
        weight += 0.5
    return min(weight, MAX_WEIGHT)


def patent_to_signal(patent: dict[str, Any]) -> RawSignal:
    number = str(patent["applicationNumber"])
    title = patent.get("title") or "Untitled"
    abstract = patent.get("abstract") or ""
    applicants = patent.get("applicantNames") or []
    return RawSignal(
        source_id=number,
        title=f"Patent: {title}"[:500],
        description=abstract or None,
        source_url=f"{DETAILS_URL}{number}",
        detected_at=parse_date(patent.get("filingDate"), ("%Y-%m-%d",)) or datetime.now(UTC),
        entity_name=(applicants[0] if applicants else "Unknown Applicant")[:500],
        signal_type=determine_signal_type(title, abstract),
        signal_weight=calculate_weight(patent),
        confidence=CONFIDENCE,
        identifiers={"patent_id": number},
        metadata={
            "inventors": patent.get("inventorNames"),
            "ipc_classes": patent.get("ipcCodes"),
            "status": patent.get("status"),
            "publication_date": patent.get("publicationDate"),
        },
        raw_data={
            "application_number": number,
            "publication_number": patent.get("publicationNumber"),
            "patent_type": patent.get("patentType"),
        },
    )


class IpAustraliaAdapter(HttpSourceAdapter):
    """Patent filings matching biofuel keywords and IPC classes.

    The access token is cached on the instance until shortly before it expires.
    """

    def __init__(
        self,
        config: AdapterConfig,
        client_id: str | None = None,
        client_secret: str | None = None,
        use_test_env: bool | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(config)
        settings = get_settings()
        self.client_id = client_id if client_id is not None else settings.ipa_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.ipa_client_secret
        )
        test_env = settings.ipa_use_test_env if use_test_env is None else use_test_env
        self.base_url = (config.base_url or (TEST_BASE_URL if test_env else PRODUCTION_BASE_URL)).rstrip("/")
        self.token_url = TEST_TOKEN_URL if test_env else PRODUCTION_TOKEN_URL
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def access_token(self, client: httpx.AsyncClient) -> str:
        if self._token and self._clock() < self._token_expires_at:
            return self._token
        if not self.client_id or not self.client_secret:
            raise MissingCredentialsError("IPA_CLIENT_ID and IPA_CLIENT_SECRET must be set")
        await self.rate_limiter.wait()
        response = await client.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        response.raise_for_status()
        data = response.json()
        self._token = data["access_token"]
        self._token_expires_at = self._clock() + int(data.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN
        logger.info("ip_australia: access token obtained")
        return self._token

    async def search(
        self, client: httpx.AsyncClient, keyword: str, since: datetime | None
    ) -> list[dict[str, Any]]:
        token = await self.access_token(client)
        body: dict[str, Any] = {"query": keyword, "pageSize": PAGE_SIZE, "page": 1}
        if since is not None:
            body["filingDateFrom"] = since.date().isoformat()
        await self.rate_limiter.wait()
        response = await client.post(
            f"{self.base_url}/search/quick",
            json=body,
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        return response.json().get("results") or []

    async def collect(
        self,
        client: httpx.AsyncClient,
        since: datetime | None,
        signals: list[RawSignal],
        errors: list[str],
    ) -> None:
        await self.access_token(client)  # fail fast on bad credentials

        patents: dict[str, dict[str, Any]] = {}
        for keyword in SEARCH_KEYWORDS:
            try:
                results = await self.search(client, keyword, since)
            except (httpx.HTTPError, ValueError) as e:
                errors.append(f"ip_australia: search {keyword!r}: {e}")
                continue
            for patent in results:
                number = patent.get("applicationNumber")
                if number and number not in patents:
                    patents[number] = patent

        for number, patent in patents.items():
            if not is_biofuel_related(patent):
                continue
            try:
                signals.append(patent_to_signal(patent))
            except (KeyError, ValueError) as e:
                errors.append(f"ip_australia: {number}: {e}")
        logger.info("ip_australia: %d unique patents, %d relevant", len(patents), len(signals))
