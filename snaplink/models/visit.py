"""Visit SQLAlchemy model for storing raw redirect events."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, SmallInteger, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from snaplink.core.database import Base
from snaplink.models.mapping import Mapping

# Longest browser, device or OS label stored; the parser truncates to fit
CLIENT_LABEL_MAX_LENGTH = 100


class Visit(Base):
    """Visit model for storing redirect events.

    Each row represents a single redirect through a slug. Rows are written
    once by the visit recorder and never updated.
    """

    __tablename__ = "visits"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    mapping_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey(Mapping.__table__.c.id),
        nullable=False,
        comment="Mapping that was visited",
    )
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        comment="UTC timestamp of the redirect",
    )
    # occurred_at decomposed in the analytics timezone
    year: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    month: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    day: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    hour: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    browser: Mapped[str | None] = mapped_column(
        String(CLIENT_LABEL_MAX_LENGTH),
        nullable=True,
        comment="Browser family parsed from the User-Agent",
    )
    device: Mapped[str | None] = mapped_column(
        String(CLIENT_LABEL_MAX_LENGTH),
        nullable=True,
        comment="Device type or brand/model parsed from the User-Agent",
    )
    os: Mapped[str | None] = mapped_column(
        String(CLIENT_LABEL_MAX_LENGTH),
        nullable=True,
        comment="Operating system family parsed from the User-Agent",
    )

    # Composite index for window scans
    __table_args__ = (
        Index("ix_visits_mapping_id_occurred_at", "mapping_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return f"<Visit {self.id} mapping={self.mapping_id} at={self.occurred_at}>"
