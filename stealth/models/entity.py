"""StealthEntity model: an organization or project inferred from signals."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stealth.db.session import Base

if TYPE_CHECKING:
    from stealth.models.entity_alias import StealthEntityAlias
    from stealth.models.entity_identifier import StealthEntityIdentifier
    from stealth.models.stealth_signal import StealthSignal


class StealthEntity(Base):
    """Resolved organization with its alias set, identifiers and rollup counters."""

    __tablename__ = "stealth_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default="unknown"
    )  # company, project, joint_venture, unknown
    canonical_name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    # Unique when present: two concurrent resolvers cannot both create the same name
    normalized_name: Mapped[str | None] = mapped_column(
        String(500), nullable=True, unique=True
    )
    current_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, index=True)
    signal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_signal_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    aliases: Mapped[list[StealthEntityAlias]] = relationship(
        "StealthEntityAlias",
        back_populates="entity",
        cascade="all, delete-orphan",
        order_by="StealthEntityAlias.id",
    )
    identifiers: Mapped[list[StealthEntityIdentifier]] = relationship(
        "StealthEntityIdentifier",
        back_populates="entity",
        cascade="all, delete-orphan",
        order_by="StealthEntityIdentifier.id",
    )
    signals: Mapped[list[StealthSignal]] = relationship(
        "StealthSignal", back_populates="entity"
    )

    @property
    def all_names(self) -> list[str]:
        return [alias.name for alias in self.aliases]

    @property
    def identifier_map(self) -> dict[str, str]:
        return {ident.id_type: ident.id_value for ident in self.identifiers}
