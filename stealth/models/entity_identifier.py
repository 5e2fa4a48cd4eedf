"""StealthEntityIdentifier model: registration numbers (ABN, ACN) owned by an entity."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stealth.db.session import Base

if TYPE_CHECKING:
    from stealth.models.entity import StealthEntity


class StealthEntityIdentifier(Base):
    """One identifier value per (entity, type); a value belongs to at most one entity."""

    __tablename__ = "stealth_entity_identifiers"
    __table_args__ = (
        UniqueConstraint("id_type", "id_value", name="uq_stealth_identifier_value"),
        UniqueConstraint("entity_id", "id_type", name="uq_stealth_identifier_entity_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stealth_entities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    id_type: Mapped[str] = mapped_column(String(32), nullable=False)  # abn, acn
    id_value: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    entity: Mapped[StealthEntity] = relationship("StealthEntity", back_populates="identifiers")
