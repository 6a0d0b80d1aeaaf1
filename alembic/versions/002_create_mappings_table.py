"""Create mappings table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from snaplink.core.config import get_settings

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = get_settings().database_schema or None


def upgrade() -> None:
    """Create the mappings table."""
    op.create_table(
        "mappings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "slug",
            sa.String(12),
            nullable=False,
            comment="Public slug (unique across active and soft-deleted rows)",
        ),
        sa.Column(
            "original_url",
            sa.Text(),
            nullable=False,
            comment="The destination URL to redirect to",
        ),
        sa.Column(
            "owner_id",
            sa.String(255),
            nullable=False,
            comment="Opaque identifier of the owning account",
        ),
        sa.Column(
            "is_custom",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment="Whether the slug was caller-provided",
        ),
        sa.Column(
            "total_visits",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
            comment="Lifetime visit count (denormalized for quick access)",
        ),
        sa.Column(
            "is_deleted",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment="Soft delete flag",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_mappings")),
        sa.UniqueConstraint("slug", name=op.f("uq_mappings_slug")),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_mappings_owner_id_created_at",
        "mappings",
        ["owner_id", "created_at"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Drop the mappings table."""
    op.drop_index("ix_mappings_owner_id_created_at", table_name="mappings", schema=SCHEMA)
    op.drop_table("mappings", schema=SCHEMA)
