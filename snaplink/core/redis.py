"""Redis-backed cache of resolved slugs for the redirect path.

The cache is strictly best-effort: every Redis failure is logged and treated
as a miss, so redirects keep working (from the database) while Redis is down.
"""

import redis.asyncio as redis
import structlog
from pydantic import ValidationError

from snaplink.core.config import get_settings
from snaplink.schemas.mapping import ResolvedMapping

settings = get_settings()
logger = structlog.get_logger()

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis | None:
    """Shared client, created lazily; None when ``REDIS_URL`` is empty."""
    global _redis_client
    if not settings.redis_url:
        return None
    if _redis_client is None:
        _redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        logger.info("Redis client initialized")
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")


class SlugCache:
    """Maps slug -> ResolvedMapping with a TTL.

    Entries must be invalidated whenever a slug stops resolving (rename,
    soft delete); the TTL only bounds staleness if an invalidation is lost.
    """

    key_prefix = "slug:"

    def __init__(self, ttl: int | None = None):
        self.ttl = ttl or settings.link_cache_ttl

    def key(self, slug: str) -> str:
        return f"{self.key_prefix}{slug}"

    async def get(self, slug: str) -> ResolvedMapping | None:
        client = await get_redis()
        if client is None:
            return None
        try:
            raw = await client.get(self.key(slug))
        except redis.RedisError as e:
            logger.warning("Slug cache read failed", slug=slug, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return ResolvedMapping.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed slug cache entry", slug=slug)
            await self.invalidate(slug)
            return None

    async def set(self, resolved: ResolvedMapping) -> None:
        client = await get_redis()
        if client is None:
            return
        try:
            await client.set(self.key(resolved.slug), resolved.model_dump_json(), ex=self.ttl)
        except redis.RedisError as e:
            logger.warning("Slug cache write failed", slug=resolved.slug, error=str(e))

    async def invalidate(self, slug: str) -> None:
        client = await get_redis()
        if client is None:
            return
        try:
            await client.delete(self.key(slug))
        except redis.RedisError as e:
            logger.warning("Slug cache invalidation failed", slug=slug, error=str(e))


_slug_cache: SlugCache | None = None


def get_slug_cache() -> SlugCache:
    """Get the global slug cache instance."""
    global _slug_cache
    if _slug_cache is None:
        _slug_cache = SlugCache()
    return _slug_cache
