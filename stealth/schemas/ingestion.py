"""Ingestion schemas: per-adapter results, trigger requests and job rows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from stealth.schemas.signal import RawSignal


class ConnectorResult(BaseModel):
    """Outcome of one adapter fetch. ``success`` is False when any error was recorded."""

    success: bool
    signals_discovered: int = 0
    signals: list[RawSignal] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    duration_ms: int = 0

    def summary(self) -> dict[str, Any]:
        """Result without the signal payloads, for job records and API responses."""
        return {
            "success": self.success,
            "signals_discovered": self.signals_discovered,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


class IngestionTrigger(BaseModel):
    connector: Optional[str] = Field(None, min_length=1, max_length=64)
    since_days: int = Field(30, ge=1, le=365)


class IngestionJobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    connector: str
    job_type: str
    status: str
    signals_discovered: int
    entities_created: int
    entities_updated: int
    signals_stored: int
    signals_skipped: int
    errors_count: int
    connector_results: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class ConnectorStatus(BaseModel):
    name: str
    display_name: str
    enabled: bool
    rate_limit: int
    timeout_seconds: float
    base_url: Optional[str] = None
