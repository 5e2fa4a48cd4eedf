"""Entity schemas for the query surface and admin review."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):
    COMPANY = "company"
    PROJECT = "project"
    JOINT_VENTURE = "joint_venture"
    UNKNOWN = "unknown"


class EntitySummary(BaseModel):
    """Entity row for list and search views."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    canonical_name: str
    entity_type: str
    current_score: float
    signal_count: int
    last_signal_at: Optional[datetime] = None
    needs_review: bool


class EntityRead(EntitySummary):
    """Full entity detail including aliases and identifiers."""

    all_names: list[str]
    identifiers: dict[str, str] = Field(default_factory=dict)
    review_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EntityList(BaseModel):
    items: list[EntitySummary]
    total: int
    limit: int
    offset: int


class EntityReviewUpdate(BaseModel):
    """Admin review decision for one entity."""

    needs_review: bool
    review_notes: Optional[str] = Field(None, max_length=2000)
    entity_type: Optional[EntityType] = None


class EntityMergeRequest(BaseModel):
    """Merge ``duplicate_id`` into ``primary_id``; the duplicate is deleted."""

    primary_id: int = Field(..., ge=1)
    duplicate_id: int = Field(..., ge=1)


# ── Scoring breakdown ──────────────────────────────────────────────────────


class SignalContribution(BaseModel):
    signal_id: int
    signal_type: str
    title: str
    source: str
    detected_at: datetime
    signal_weight: float
    confidence: float
    recency: float
    contribution: float


class SignalTypeBucket(BaseModel):
    signal_type: str
    count: int
    contribution: float
    score_share: float  # points of the final score attributable to this type


class ScoringBreakdown(BaseModel):
    entity_id: int
    canonical_name: str
    current_score: float
    computed_score: float
    raw_sum: float
    k: float
    half_life_months: float
    as_of: datetime
    by_type: list[SignalTypeBucket]
    signals: list[SignalContribution]


class SignalTypeCount(BaseModel):
    signal_type: str
    count: int


class DashboardStats(BaseModel):
    total_entities: int
    high_score_entities: int
    needs_review_entities: int
    total_signals: int
    new_signals_today: int
    new_signals_week: int
    top_signal_types: list[SignalTypeCount]
