"""Mapping registry: create, list, resolve, rename and soft-delete mappings."""

import structlog
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.core.clock import utcnow
from snaplink.core.exceptions import (
    ConflictError,
    NotFoundError,
    ResourceExhaustedError,
    ValidationError,
)
from snaplink.core.observability import record_slug_collision
from snaplink.core.redis import SlugCache, get_slug_cache
from snaplink.models.mapping import Mapping
from snaplink.schemas.mapping import ResolvedMapping
from snaplink.services.slug_allocator import SlugAllocator, get_slug_allocator

logger = structlog.get_logger()

_http_url = TypeAdapter(HttpUrl)


def validate_original_url(original_url: str) -> str:
    """Check that a destination is an absolute http(s) URL with a host.

    Returns the URL as given (surrounding whitespace stripped).
    """
    candidate = original_url.strip()
    try:
        _http_url.validate_python(candidate)
    except PydanticValidationError:
        raise ValidationError("Original URL must be an absolute http or https URL") from None
    return candidate


class MappingRegistry:
    """Lifecycle of mappings on top of the mapping store.

    Every method works inside the caller's session and leaves committing to
    the caller. Mappings are never hard-deleted; soft-deleted rows keep their
    slug reserved.

    Usage:
        registry = MappingRegistry()
        mapping = await registry.create(session, "https://example.com", owner_id="u1")
        await session.commit()
    """

    def __init__(
        self,
        allocator: SlugAllocator | None = None,
        cache: SlugCache | None = None,
    ):
        self._allocator = allocator or get_slug_allocator()
        self._cache = cache or get_slug_cache()

    @property
    def allocator(self) -> SlugAllocator:
        return self._allocator

    async def create(
        self,
        session: AsyncSession,
        original_url: str,
        owner_id: str,
        custom_slug: str | None = None,
    ) -> Mapping:
        """Create a mapping with a custom or generated slug.

        A unique-constraint violation on insert means another request took
        the slug first: generated slugs move on to the next candidate, custom
        slugs fail with ConflictError. Recovering from the violation rolls the
        session back, so nothing else may be pending in it.

        Raises:
            ValidationError: malformed URL or custom slug.
            ConflictError: custom slug reserved or taken.
            ResourceExhaustedError: no free generated slug within the attempt ceiling.
        """
        url = validate_original_url(original_url)

        if custom_slug is not None:
            slug = await self._allocator.check_custom(session, custom_slug)
            try:
                return await self._insert(session, slug, url, owner_id, is_custom=True)
            except IntegrityError:
                await session.rollback()
                record_slug_collision("insert")
                raise ConflictError(f"Slug '{slug}' is already in use", reason="in_use") from None

        candidates = self._allocator.candidates(session)
        try:
            async for slug in candidates:
                try:
                    return await self._insert(session, slug, url, owner_id, is_custom=False)
                except IntegrityError:
                    await session.rollback()
                    record_slug_collision("insert")
                    logger.info("Slug taken at insert, retrying", slug=slug)
        finally:
            await candidates.aclose()
        # Reached only if the candidate source stops without raising
        raise ResourceExhaustedError("Unable to generate a unique slug, try again later")

    async def _insert(
        self,
        session: AsyncSession,
        slug: str,
        original_url: str,
        owner_id: str,
        is_custom: bool,
    ) -> Mapping:
        mapping = Mapping(
            slug=slug,
            original_url=original_url,
            owner_id=owner_id,
            is_custom=is_custom,
            total_visits=0,
            is_deleted=False,
        )
        session.add(mapping)
        await session.flush()
        await session.refresh(mapping)
        return mapping

    async def list_for_owner(self, session: AsyncSession, owner_id: str) -> list[Mapping]:
        """All active mappings of an owner, newest first."""
        result = await session.execute(
            select(Mapping)
            .where(
                Mapping.owner_id == owner_id,
                Mapping.is_deleted == False,  # noqa: E712
            )
            .order_by(Mapping.created_at.desc())
        )
        return list(result.scalars().all())

    async def lookup(self, session: AsyncSession, slug: str) -> Mapping:
        """Get the active mapping for a slug.

        Raises NotFoundError if the slug is unknown or soft-deleted.
        """
        result = await session.execute(
            select(Mapping).where(
                Mapping.slug == slug,
                Mapping.is_deleted == False,  # noqa: E712
            )
        )
        mapping = result.scalar_one_or_none()
        if mapping is None:
            raise NotFoundError("Link not found")
        return mapping

    async def resolve(self, session: AsyncSession, slug: str) -> ResolvedMapping:
        """Redirect-path lookup: Redis cache first, then the database."""
        cached = await self._cache.get(slug)
        if cached is not None:
            return cached

        mapping = await self.lookup(session, slug)
        resolved = ResolvedMapping(
            mapping_id=str(mapping.id),
            slug=mapping.slug,
            original_url=mapping.original_url,
        )
        await self._cache.set(resolved)
        return resolved

    async def get_owned(self, session: AsyncSession, slug: str, owner_id: str) -> Mapping:
        """Get an active mapping owned by ``owner_id``.

        Mappings of other owners are reported as missing, not forbidden.
        """
        result = await session.execute(
            select(Mapping).where(
                Mapping.slug == slug,
                Mapping.owner_id == owner_id,
                Mapping.is_deleted == False,  # noqa: E712
            )
        )
        mapping = result.scalar_one_or_none()
        if mapping is None:
            raise NotFoundError("Link not found")
        return mapping

    async def rename(
        self,
        session: AsyncSession,
        slug: str,
        new_slug: str,
        owner_id: str,
    ) -> Mapping:
        """Change a mapping's slug, keeping everything else (visits included).

        Raises:
            ValidationError: malformed new slug.
            NotFoundError: no active mapping with ``slug`` owned by ``owner_id``.
            ConflictError: new slug reserved or held by any mapping.
        """
        self._allocator.validate_format(new_slug)
        mapping = await self.get_owned(session, slug, owner_id)
        await self._allocator.check_custom(session, new_slug)

        mapping.slug = new_slug
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            record_slug_collision("insert")
            raise ConflictError(f"Slug '{new_slug}' is already in use", reason="in_use") from None

        await self._cache.invalidate(slug)
        await session.refresh(mapping)
        return mapping

    async def soft_delete(self, session: AsyncSession, slug: str, owner_id: str) -> None:
        """Mark a mapping deleted; its row and visits are kept.

        Raises NotFoundError when the mapping is missing, foreign or already deleted.
        """
        mapping = await self.get_owned(session, slug, owner_id)
        mapping.is_deleted = True
        mapping.deleted_at = utcnow()
        await session.flush()

        await self._cache.invalidate(slug)


# Global registry instance
_registry: MappingRegistry | None = None


def get_mapping_registry() -> MappingRegistry:
    """Get the global mapping registry instance."""
    global _registry
    if _registry is None:
        _registry = MappingRegistry()
    return _registry
