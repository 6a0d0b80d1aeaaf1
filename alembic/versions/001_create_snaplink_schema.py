"""Create snaplink schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from snaplink.core.config import get_settings

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = get_settings().database_schema or None


def upgrade() -> None:
    """Create the configured schema; nothing to do without one (SQLite)."""
    if SCHEMA:
        op.execute(sa.schema.CreateSchema(SCHEMA, if_not_exists=True))


def downgrade() -> None:
    """Drop the configured schema."""
    if SCHEMA:
        op.execute(sa.schema.DropSchema(SCHEMA, cascade=True, if_exists=True))
