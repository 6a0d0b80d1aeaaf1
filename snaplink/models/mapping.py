"""Mapping SQLAlchemy model."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from snaplink.core.clock import utcnow
from snaplink.core.database import Base
from snaplink.core.security import OWNER_ID_MAX_LENGTH


class Mapping(Base):
    """Mapping model binding a slug to a destination URL and its owner."""

    __tablename__ = "mappings"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    slug: Mapped[str] = mapped_column(
        String(12),
        unique=True,
        nullable=False,
        comment="Public slug (unique across active and soft-deleted rows)",
    )
    original_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="The destination URL to redirect to",
    )
    owner_id: Mapped[str] = mapped_column(
        String(OWNER_ID_MAX_LENGTH),
        nullable=False,
        comment="Opaque identifier of the owning account",
    )
    is_custom: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Whether the slug was caller-provided",
    )
    total_visits: Mapped[int] = mapped_column(
        default=0,
        nullable=False,
        comment="Lifetime visit count (denormalized for quick access)",
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Soft delete flag",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    __table_args__ = (
        Index("ix_mappings_owner_id_created_at", "owner_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Mapping {self.slug} -> {self.original_url[:50]}>"

    @property
    def is_active(self) -> bool:
        """Whether the mapping can still be resolved."""
        return not self.is_deleted
