"""IngestionJob model."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stealth.db.session import Base


class IngestionJob(Base):
    """One ingestion run: a single adapter or "all", manual or scheduled."""

    __tablename__ = "stealth_ingestion_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector: Mapped[str] = mapped_column(String(64), nullable=False)  # adapter name or "all"
    job_type: Mapped[str] = mapped_column(String(32), nullable=False)  # manual, scheduled
    status: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # started, running, completed, partial, failed
    signals_discovered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    entities_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    entities_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    signals_stored: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    signals_skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    connector_results: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False, index=True
    )
