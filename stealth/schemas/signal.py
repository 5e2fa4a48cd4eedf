"""Signal schemas: adapter output and stored-signal responses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignalType(str, Enum):
    """Kinds of activity signal an adapter can emit."""

    PLANNING_APPLICATION = "planning_application"
    GRANT_ANNOUNCEMENT = "grant_announcement"
    INVESTMENT_DISCLOSURE = "investment_disclosure"
    ENVIRONMENTAL_APPROVAL = "environmental_approval"
    PATENT_FILING = "patent_filing"
    PATENT_BIOFUEL_TECH = "patent_biofuel_tech"
    JOB_POSTING = "job_posting"
    NEWS_MENTION = "news_mention"
    REGULATORY_FILING = "regulatory_filing"
    PARTNERSHIP_ANNOUNCEMENT = "partnership_announcement"


# ── RawSignal ──────────────────────────────────────────────────────────────


class RawSignal(BaseModel):
    """Signal as returned by a source adapter, before entity resolution.

    ``source_id`` is only unique within the adapter that produced it.
    ``identifiers`` carries registry numbers when the source publishes them
    (abn, acn, patent_id, permit_id).
    """

    source_id: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    source_url: Optional[str] = Field(None, max_length=1000)
    detected_at: datetime
    entity_name: str = Field(..., min_length=1, max_length=500)
    signal_type: SignalType
    signal_weight: float = Field(..., ge=0)
    confidence: float = Field(..., ge=0, le=1)
    identifiers: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    raw_data: Optional[dict[str, Any]] = None


# ── Stored signals ─────────────────────────────────────────────────────────


class SignalRead(BaseModel):
    """Schema for reading a stored signal (response)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_id: int
    signal_type: str
    signal_weight: float
    confidence: float
    source: str
    source_id: str
    source_url: Optional[str] = None
    title: str
    description: Optional[str] = None
    detected_at: datetime
    created_at: datetime


class RecentSignalRead(SignalRead):
    """Stored signal joined with the owning entity's canonical name."""

    entity_name: str
