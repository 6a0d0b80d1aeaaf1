"""Create visits table.

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from snaplink.core.config import get_settings

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = get_settings().database_schema or None


def upgrade() -> None:
    """Create the visits table."""
    op.create_table(
        "visits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "mapping_id",
            sa.Uuid(),
            nullable=False,
            comment="Mapping that was visited",
        ),
        sa.Column(
            "occurred_at",
            sa.DateTime(),
            nullable=False,
            comment="UTC timestamp of the redirect",
        ),
        sa.Column("year", sa.SmallInteger(), nullable=False),
        sa.Column("month", sa.SmallInteger(), nullable=False),
        sa.Column("day", sa.SmallInteger(), nullable=False),
        sa.Column("hour", sa.SmallInteger(), nullable=False),
        sa.Column(
            "browser",
            sa.String(100),
            nullable=True,
            comment="Browser family parsed from the User-Agent",
        ),
        sa.Column(
            "device",
            sa.String(100),
            nullable=True,
            comment="Device type or brand/model parsed from the User-Agent",
        ),
        sa.Column(
            "os",
            sa.String(100),
            nullable=True,
            comment="Operating system family parsed from the User-Agent",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_visits")),
        sa.ForeignKeyConstraint(
            ["mapping_id"],
            [f"{SCHEMA}.mappings.id" if SCHEMA else "mappings.id"],
            name=op.f("fk_visits_mapping_id_mappings"),
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_visits_mapping_id_occurred_at",
        "visits",
        ["mapping_id", "occurred_at"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Drop the visits table."""
    op.drop_index("ix_visits_mapping_id_occurred_at", table_name="visits", schema=SCHEMA)
    op.drop_table("visits", schema=SCHEMA)
