"""SQLAlchemy models.

All models should be imported here for Alembic to detect them.
"""

from snaplink.core.database import Base
from snaplink.models.mapping import Mapping
from snaplink.models.visit import Visit

__all__ = ["Base", "Mapping", "Visit"]
