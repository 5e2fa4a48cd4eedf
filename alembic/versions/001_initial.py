"""stealth discovery schema: entities, aliases, identifiers, signals, ingestion jobs

Revision ID: 001
Revises:
Create Date: 2026-10-18

normalized_name and (id_type, id_value) are unique so concurrent resolvers
cannot both create the same entity. (source, source_id) is unique so an
overlapping lookback window never stores a signal twice.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "stealth_entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_type", sa.String(length=32), server_default="unknown", nullable=False),
        sa.Column("canonical_name", sa.String(length=500), nullable=False),
        sa.Column("normalized_name", sa.String(length=500), nullable=True),
        sa.Column("current_score", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("signal_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_signal_at", sa.DateTime(), nullable=True),
        sa.Column("needs_review", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("normalized_name", name="uq_stealth_entities_normalized_name"),
    )
    op.create_index(
        "ix_stealth_entities_canonical_name", "stealth_entities", ["canonical_name"]
    )
    op.create_index(
        "ix_stealth_entities_current_score", "stealth_entities", ["current_score"]
    )

    op.create_table(
        "stealth_entity_aliases",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["entity_id"], ["stealth_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_id", "name", name="uq_stealth_alias_entity_name"),
    )
    op.create_index(
        "ix_stealth_entity_aliases_entity_id", "stealth_entity_aliases", ["entity_id"]
    )

    op.create_table(
        "stealth_entity_identifiers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("id_type", sa.String(length=32), nullable=False),
        sa.Column("id_value", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["entity_id"], ["stealth_entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("id_type", "id_value", name="uq_stealth_identifier_value"),
        sa.UniqueConstraint("entity_id", "id_type", name="uq_stealth_identifier_entity_type"),
    )
    op.create_index(
        "ix_stealth_entity_identifiers_entity_id", "stealth_entity_identifiers", ["entity_id"]
    )

    op.create_table(
        "stealth_signals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("signal_type", sa.String(length=64), nullable=False),
        sa.Column("signal_weight", sa.Float(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=False),
        sa.Column("source_url", sa.String(length=1000), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("detected_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["entity_id"], ["stealth_entities.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source", "source_id", name="uq_stealth_signal_source_id"),
    )
    op.create_index("ix_stealth_signals_entity_id", "stealth_signals", ["entity_id"])
    op.create_index("ix_stealth_signals_signal_type", "stealth_signals", ["signal_type"])
    op.create_index("ix_stealth_signals_detected_at", "stealth_signals", ["detected_at"])

    op.create_table(
        "stealth_ingestion_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("connector", sa.String(length=64), nullable=False),
        sa.Column("job_type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("signals_discovered", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("entities_created", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("entities_updated", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("signals_stored", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("signals_skipped", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("errors_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("connector_results", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_stealth_ingestion_jobs_created_at", "stealth_ingestion_jobs", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_stealth_ingestion_jobs_created_at", table_name="stealth_ingestion_jobs")
    op.drop_table("stealth_ingestion_jobs")
    op.drop_index("ix_stealth_signals_detected_at", table_name="stealth_signals")
    op.drop_index("ix_stealth_signals_signal_type", table_name="stealth_signals")
    op.drop_index("ix_stealth_signals_entity_id", table_name="stealth_signals")
    op.drop_table("stealth_signals")
    op.drop_index(
        "ix_stealth_entity_identifiers_entity_id", table_name="stealth_entity_identifiers"
    )
    op.drop_table("stealth_entity_identifiers")
    op.drop_index("ix_stealth_entity_aliases_entity_id", table_name="stealth_entity_aliases")
    op.drop_table("stealth_entity_aliases")
    op.drop_index("ix_stealth_entities_current_score", table_name="stealth_entities")
    op.drop_index("ix_stealth_entities_canonical_name", table_name="stealth_entities")
    op.drop_table("stealth_entities")
