"""StealthEntityAlias model: every observed spelling of an entity's name."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stealth.db.session import Base

if TYPE_CHECKING:
    from stealth.models.entity import StealthEntity


class StealthEntityAlias(Base):
    """Alternate names seen for an entity. The canonical name is always one of them."""

    __tablename__ = "stealth_entity_aliases"
    __table_args__ = (UniqueConstraint("entity_id", "name", name="uq_stealth_alias_entity_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stealth_entities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    entity: Mapped[StealthEntity] = relationship("StealthEntity", back_populates="aliases")
