"""Slug allocation with bounded, widening collision retries."""

import secrets
from collections.abc import AsyncIterator, Callable, Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.core.config import get_settings
from snaplink.core.exceptions import ConflictError, ResourceExhaustedError, ValidationError
from snaplink.core.observability import record_slug_collision
from snaplink.core.slugs import SLUG_ALPHABET, SLUG_MAX_LENGTH, SLUG_MIN_LENGTH, is_valid_slug
from snaplink.models.mapping import Mapping

settings = get_settings()
logger = structlog.get_logger()

# Produces a random slug of the requested length
SlugGenerator = Callable[[int], str]


def generate_slug(length: int) -> str:
    """Generate a random slug from the 64-symbol slug alphabet."""
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


class SlugAllocator:
    """Chooses slugs that no mapping holds.

    Custom slugs are validated and checked; generated slugs start at
    ``initial_length`` characters and get ``retry_budget`` attempts per
    length before the length grows by one. ``max_attempts`` bounds the whole
    search, after which ResourceExhaustedError is raised.

    Availability checks here are advisory. The unique constraint on
    ``mappings.slug`` is authoritative, so callers inserting a candidate must
    still handle IntegrityError (see MappingRegistry.create).

    Usage:
        allocator = SlugAllocator()
        slug = await allocator.allocate(session, custom="my-slug")

        async for candidate in allocator.candidates(session):
            ...  # try to insert, continue on IntegrityError
    """

    def __init__(
        self,
        reserved: Iterable[str] | None = None,
        initial_length: int | None = None,
        retry_budget: int | None = None,
        max_attempts: int | None = None,
        generator: SlugGenerator = generate_slug,
    ):
        """Initialize the allocator.

        Args:
            reserved: Slugs that may never be assigned. Defaults to settings.reserved_slugs.
            initial_length: Length of the first generated candidates.
            retry_budget: Attempts per length before widening.
            max_attempts: Absolute ceiling on generated candidates.
            generator: Random slug source, replaceable for tests.
        """
        reserved = settings.reserved_slugs if reserved is None else reserved
        self._reserved = frozenset(word.lower() for word in reserved)
        self._initial_length = max(initial_length or settings.slug_length, SLUG_MIN_LENGTH)
        self._retry_budget = retry_budget or settings.slug_retry_budget
        self._max_attempts = max_attempts or settings.slug_max_attempts
        self._generator = generator

    def is_reserved(self, slug: str) -> bool:
        """Check a slug against the reserved word set (case-insensitive)."""
        return slug.lower() in self._reserved

    async def is_slug_available(self, session: AsyncSession, slug: str) -> bool:
        """Check that no mapping, active or soft-deleted, holds the slug."""
        if self.is_reserved(slug):
            return False
        result = await session.execute(
            select(Mapping.id).where(Mapping.slug == slug)
        )
        return result.scalar_one_or_none() is None

    def validate_format(self, slug: str) -> None:
        """Raise ValidationError unless the slug follows the format rule."""
        if not is_valid_slug(slug):
            raise ValidationError(
                f"Slug must be {SLUG_MIN_LENGTH}-{SLUG_MAX_LENGTH} characters "
                "of letters, digits, '_' or '-'"
            )

    async def check_custom(self, session: AsyncSession, slug: str) -> str:
        """Validate a caller-chosen slug and make sure it is free.

        Raises:
            ValidationError: the slug breaks the format rule.
            ConflictError: the slug is reserved or already in use.
        """
        self.validate_format(slug)
        if self.is_reserved(slug):
            raise ConflictError(f"Slug '{slug}' is reserved", reason="reserved")
        if not await self.is_slug_available(session, slug):
            raise ConflictError(f"Slug '{slug}' is already in use", reason="in_use")
        return slug

    async def candidates(self, session: AsyncSession) -> AsyncIterator[str]:
        """Yield generated slugs that passed the availability pre-check.

        The iterator shares one attempt budget across everything it yields,
        so a caller that loses an insert race simply asks for the next one.

        Raises:
            ResourceExhaustedError: the attempt ceiling or the maximum slug
                length was reached.
        """
        attempts = 0
        for length in range(self._initial_length, SLUG_MAX_LENGTH + 1):
            for _ in range(self._retry_budget):
                if attempts >= self._max_attempts:
                    raise self._exhausted(attempts, length)
                attempts += 1
                candidate = self._generator(length)
                if await self.is_slug_available(session, candidate):
                    yield candidate
                    continue
                record_slug_collision("precheck")
                logger.debug("Slug candidate taken", slug=candidate, attempt=attempts)
            logger.info(
                "Widening generated slugs",
                from_length=length,
                attempts=attempts,
            )
        raise self._exhausted(attempts, SLUG_MAX_LENGTH)

    async def allocate(self, session: AsyncSession, custom: str | None = None) -> str:
        """Return a free slug: the custom one if given, otherwise a generated one."""
        if custom is not None:
            return await self.check_custom(session, custom)

        generated = self.candidates(session)
        try:
            return await anext(generated)
        finally:
            await generated.aclose()

    def _exhausted(self, attempts: int, length: int) -> ResourceExhaustedError:
        logger.error("Slug space exhausted", attempts=attempts, length=length)
        return ResourceExhaustedError("Unable to generate a unique slug, try again later")


# Global allocator instance
_allocator: SlugAllocator | None = None


def get_slug_allocator() -> SlugAllocator:
    """Get the global slug allocator instance."""
    global _allocator
    if _allocator is None:
        _allocator = SlugAllocator()
    return _allocator
