"""Mapping Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, computed_field

from snaplink.core.config import get_settings
from snaplink.core.slugs import SLUG_MAX_LENGTH, SLUG_MIN_LENGTH, SLUG_PATTERN

settings = get_settings()


class MappingCreate(BaseModel):
    """Schema for creating a new mapping."""

    original_url: HttpUrl = Field(description="Absolute http(s) URL to shorten")
    custom_slug: str | None = Field(
        default=None,
        min_length=SLUG_MIN_LENGTH,
        max_length=SLUG_MAX_LENGTH,
        pattern=SLUG_PATTERN,
        description="Optional custom slug (letters, digits, '_' and '-')",
    )


class MappingRename(BaseModel):
    """Schema for renaming a mapping's slug."""

    slug: str = Field(
        min_length=SLUG_MIN_LENGTH,
        max_length=SLUG_MAX_LENGTH,
        pattern=SLUG_PATTERN,
        description="New slug",
    )


class MappingResponse(BaseModel):
    """Public projection of a mapping.

    Internal id and owner are never exposed.
    """

    model_config = ConfigDict(from_attributes=True)

    slug: str
    original_url: str
    total_visits: int
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def short_url(self) -> str:
        """Generate the full short URL."""
        return f"{settings.public_base_url.rstrip('/')}/{self.slug}"


class ResolvedMapping(BaseModel):
    """What the redirect path needs to know about a slug (cacheable)."""

    mapping_id: str
    slug: str
    original_url: str
