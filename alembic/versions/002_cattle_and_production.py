"""Cattle registry and milk production tables.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "cattle",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("tag_number", sa.String(50), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("breed", sa.String(50), nullable=True),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("gender", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("weight", sa.Numeric(6, 2), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("extra", _JSON, nullable=True),
        sa.Column("parent_bull_id", sa.Uuid, sa.ForeignKey("cattle.id"), nullable=True),
        sa.Column("parent_cow_id", sa.Uuid, sa.ForeignKey("cattle.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("gender IN ('male', 'female')", name="ck_cattle_gender"),
        sa.CheckConstraint(
            "status IN ('active', 'pregnant', 'dry', 'sick', 'sold', 'deceased', 'quarantine')",
            name="ck_cattle_status",
        ),
    )
    op.create_index("ix_cattle_tag_number", "cattle", ["tag_number"], unique=True)
    op.create_index("ix_cattle_status", "cattle", ["status"])
    op.create_index("ix_cattle_breed", "cattle", ["breed"])

    op.create_table(
        "productions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("cattle_id", sa.Uuid, sa.ForeignKey("cattle.id"), nullable=False),
        sa.Column("production_date", sa.Date, nullable=False),
        sa.Column("session", sa.String(10), nullable=False),
        sa.Column("quantity", sa.Numeric(6, 2), nullable=False),
        sa.Column("fat_content", sa.Numeric(4, 2), nullable=True),
        sa.Column("protein_content", sa.Numeric(4, 2), nullable=True),
        sa.Column("temperature", sa.Numeric(4, 1), nullable=True),
        sa.Column("status", sa.String(10), nullable=False, server_default="recorded"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("quality_metrics", _JSON, nullable=True),
        sa.Column("recorded_by", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("verified_by", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("session IN ('morning', 'evening')", name="ck_productions_session"),
        sa.CheckConstraint("status IN ('recorded', 'verified', 'rejected')", name="ck_productions_status"),
    )
    op.create_index("ix_productions_date_session", "productions", ["production_date", "session"])
    op.create_index("ix_productions_cattle_date", "productions", ["cattle_id", "production_date"])
    op.create_index(
        "uq_productions_cattle_date_session",
        "productions",
        ["cattle_id", "production_date", "session"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_table("productions")
    op.drop_table("cattle")
