"""Text helpers shared by source adapters: HTML stripping, keyword and amount matching."""

from __future__ import annotations

import re
from datetime import UTC, datetime

from bs4 import BeautifulSoup

BIOFUEL_KEYWORDS: tuple[str, ...] = (
    # Primary biofuel terms
    "biofuel",
    "biodiesel",
    "bioethanol",
    "renewable diesel",
    "sustainable aviation fuel",
    "saf",
    "hvo",
    "hydrotreated vegetable oil",
    "fame",
    "fatty acid methyl ester",
    # Feedstock
    "used cooking oil",
    "uco",
    "tallow",
    "canola oil",
    "soybean oil",
    "palm oil",
    "waste oil",
    "animal fat",
    "vegetable oil",
    "feedstock",
    # Process
    "transesterification",
    "hydrogenation",
    "fischer-tropsch",
    "pyrolysis",
    "gasification",
    "biorefinery",
    "bio-refinery",
    # Facilities
    "biofuel plant",
    "biodiesel plant",
    "bioethanol plant",
    "renewable fuel facility",
    "bioenergy",
    "bio-energy",
)

# Whole-word match so "saf" does not hit "safety"
_KEYWORD_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in BIOFUEL_KEYWORDS) + r")\b", re.IGNORECASE
)

_AMOUNT_RE = re.compile(
    r"\$\s?(\d+(?:,\d{3})*(?:\.\d+)?)\s*(million|billion|m|bn|b)?\b", re.IGNORECASE
)
_MULTIPLIERS = {"million": 1e6, "m": 1e6, "billion": 1e9, "bn": 1e9, "b": 1e9}


def strip_html(html: str | None) -> str:
    """Plain text from an HTML fragment, whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return re.sub(r"\s+", " ", soup.get_text(separator=" ", strip=True)).strip()


def contains_biofuel_keywords(text: str | None) -> bool:
    return bool(text) and _KEYWORD_RE.search(text) is not None


def matched_keywords(text: str | None) -> list[str]:
    """Distinct keywords found in text, lowercased, in first-seen order."""
    if not text:
        return []
    seen: list[str] = []
    for match in _KEYWORD_RE.finditer(text):
        word = match.group(0).lower()
        if word not in seen:
            seen.append(word)
    return seen


def parse_amount(text: str | None) -> float | None:
    """First dollar amount in text, in dollars ("$12.5 million" -> 12500000.0)."""
    if not text:
        return None
    match = _AMOUNT_RE.search(text)
    if not match:
        return None
    value = float(match.group(1).replace(",", ""))
    unit = (match.group(2) or "").lower()
    return value * _MULTIPLIERS.get(unit, 1.0)


def parse_date(value: str | None, formats: tuple[str, ...]) -> datetime | None:
    """Parse with the first matching format; result is UTC. None if nothing matches."""
    if not value or not value.strip():
        return None
    raw = value.strip()
    for fmt in formats:
        try:
            parsed = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed.astimezone(UTC)
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed.astimezone(UTC)
