"""Tests for the mapping registry."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from snaplink.core.exceptions import (
    ConflictError,
    NotFoundError,
    ResourceExhaustedError,
    ValidationError,
)
from snaplink.core.redis import SlugCache
from snaplink.models import Mapping
from snaplink.schemas import ResolvedMapping
from snaplink.services import MappingRegistry, SlugAllocator, validate_original_url

from .conftest import OTHER_OWNER, OWNER


@pytest.mark.parametrize(
    "url",
    ["https://example.com", "http://example.com/a?b=c", "  https://example.com/x  "],
)
def test_validate_original_url_accepts_http(url):
    assert validate_original_url(url) == url.strip()


@pytest.mark.parametrize(
    "url",
    ["ftp://example.com/file", "example.com", "not a url", "https://", ""],
)
def test_validate_original_url_rejects(url):
    with pytest.raises(ValidationError):
        validate_original_url(url)


@pytest.mark.asyncio
async def test_create_generated_slug(db_session, registry):
    mapping = await registry.create(db_session, "https://example.com/page", OWNER)

    assert len(mapping.slug) == 5
    assert mapping.original_url == "https://example.com/page"
    assert mapping.owner_id == OWNER
    assert mapping.total_visits == 0
    assert mapping.is_custom is False
    assert mapping.is_active


@pytest.mark.asyncio
async def test_create_custom_slug(db_session, registry):
    mapping = await registry.create(db_session, "https://example.com", OWNER, custom_slug="my-link")
    assert mapping.slug == "my-link"
    assert mapping.is_custom is True


@pytest.mark.asyncio
async def test_create_rejects_bad_url_before_touching_slugs(db_session, registry):
    with pytest.raises(ValidationError):
        await registry.create(db_session, "ftp://example.com", OWNER, custom_slug="health")


@pytest.mark.asyncio
async def test_create_custom_conflicts(db_session, registry):
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="taken1")

    with pytest.raises(ConflictError) as exc_info:
        await registry.create(db_session, "https://other.com", OTHER_OWNER, custom_slug="taken1")
    assert exc_info.value.reason == "in_use"

    with pytest.raises(ConflictError) as exc_info:
        await registry.create(db_session, "https://other.com", OWNER, custom_slug="metrics")
    assert exc_info.value.reason == "reserved"


@pytest.mark.asyncio
async def test_create_retries_on_insert_race(session_factory, monkeypatch):
    async with session_factory() as session:
        session.add(Mapping(slug="raced", original_url="https://a.com", owner_id=OTHER_OWNER))
        await session.commit()

    slugs = iter(["raced", "fresh"])
    allocator = SlugAllocator(generator=lambda length: next(slugs))

    # Pre-check misses the row, as if it was inserted concurrently
    async def always_available(session, slug):
        return True

    monkeypatch.setattr(allocator, "is_slug_available", always_available)
    registry = MappingRegistry(allocator=allocator)

    async with session_factory() as session:
        mapping = await registry.create(session, "https://example.com", OWNER)
        await session.commit()
    assert mapping.slug == "fresh"

    async with session_factory() as session:
        result = await session.execute(select(Mapping.slug).order_by(Mapping.slug))
        assert list(result.scalars()) == ["fresh", "raced"]


@pytest.mark.asyncio
async def test_create_custom_insert_race_is_conflict(session_factory, monkeypatch):
    async with session_factory() as session:
        session.add(Mapping(slug="raced", original_url="https://a.com", owner_id=OTHER_OWNER))
        await session.commit()

    allocator = SlugAllocator()

    async def always_available(session, slug):
        return True

    monkeypatch.setattr(allocator, "is_slug_available", always_available)
    registry = MappingRegistry(allocator=allocator)

    async with session_factory() as session:
        with pytest.raises(ConflictError):
            await registry.create(session, "https://example.com", OWNER, custom_slug="raced")


@pytest.mark.asyncio
async def test_list_for_owner_newest_first(db_session, registry):
    first = await registry.create(db_session, "https://one.com", OWNER, custom_slug="first")
    second = await registry.create(db_session, "https://two.com", OWNER, custom_slug="second")
    await registry.create(db_session, "https://three.com", OTHER_OWNER, custom_slug="other")
    deleted = await registry.create(db_session, "https://four.com", OWNER, custom_slug="gone1")
    second.created_at = first.created_at + timedelta(seconds=1)
    await db_session.flush()
    await registry.soft_delete(db_session, deleted.slug, OWNER)

    mappings = await registry.list_for_owner(db_session, OWNER)

    assert [m.slug for m in mappings] == ["second", "first"]
    assert await registry.list_for_owner(db_session, "nobody") == []


@pytest.mark.asyncio
async def test_lookup(db_session, registry):
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="look1")

    mapping = await registry.lookup(db_session, "look1")
    assert mapping.original_url == "https://example.com"

    with pytest.raises(NotFoundError):
        await registry.lookup(db_session, "nope1")


@pytest.mark.asyncio
async def test_resolve_without_cache(db_session, registry):
    created = await registry.create(db_session, "https://example.com", OWNER, custom_slug="res01")

    resolved = await registry.resolve(db_session, "res01")

    assert resolved.mapping_id == str(created.id)
    assert resolved.original_url == "https://example.com"


@pytest.mark.asyncio
async def test_rename_keeps_identity(db_session, registry):
    created = await registry.create(db_session, "https://example.com", OWNER, custom_slug="old01")
    created.total_visits = 4
    await db_session.flush()

    renamed = await registry.rename(db_session, "old01", "new01", OWNER)

    assert renamed.id == created.id
    assert renamed.slug == "new01"
    assert renamed.total_visits == 4
    assert renamed.original_url == "https://example.com"
    with pytest.raises(NotFoundError):
        await registry.lookup(db_session, "old01")
    assert (await registry.lookup(db_session, "new01")).id == created.id


@pytest.mark.asyncio
async def test_rename_errors(db_session, registry):
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="mine1")
    await registry.create(db_session, "https://example.com", OTHER_OWNER, custom_slug="their")

    with pytest.raises(ValidationError):
        await registry.rename(db_session, "mine1", "x", OWNER)
    with pytest.raises(NotFoundError):
        await registry.rename(db_session, "their", "stolen", OWNER)
    with pytest.raises(NotFoundError):
        await registry.rename(db_session, "nope1", "fresh", OWNER)
    with pytest.raises(ConflictError) as exc_info:
        await registry.rename(db_session, "mine1", "their", OWNER)
    assert exc_info.value.reason == "in_use"
    with pytest.raises(ConflictError) as exc_info:
        await registry.rename(db_session, "mine1", "swagger", OWNER)
    assert exc_info.value.reason == "reserved"


@pytest.mark.asyncio
async def test_old_slug_is_free_after_rename(db_session, registry):
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="old01")
    await registry.rename(db_session, "old01", "new01", OWNER)

    reused = await registry.create(db_session, "https://other.com", OTHER_OWNER, custom_slug="old01")
    assert reused.slug == "old01"


@pytest.mark.asyncio
async def test_soft_delete(db_session, registry):
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="del01")

    with pytest.raises(NotFoundError):
        await registry.soft_delete(db_session, "del01", OTHER_OWNER)

    await registry.soft_delete(db_session, "del01", OWNER)

    with pytest.raises(NotFoundError):
        await registry.lookup(db_session, "del01")
    with pytest.raises(NotFoundError):
        await registry.soft_delete(db_session, "del01", OWNER)

    row = (await db_session.execute(select(Mapping).where(Mapping.slug == "del01"))).scalar_one()
    assert row.is_deleted is True
    assert row.deleted_at is not None


@pytest.mark.asyncio
async def test_deleted_slug_stays_reserved(db_session, registry):
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="del01")
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="keep1")
    await registry.soft_delete(db_session, "del01", OWNER)

    with pytest.raises(ConflictError):
        await registry.create(db_session, "https://example.com", OWNER, custom_slug="del01")
    with pytest.raises(ConflictError):
        await registry.rename(db_session, "keep1", "del01", OWNER)


class MemoryCache(SlugCache):
    """In-process stand-in for the Redis slug cache."""

    def __init__(self):
        super().__init__(ttl=60)
        self.entries: dict[str, ResolvedMapping] = {}

    async def get(self, slug):
        return self.entries.get(slug)

    async def set(self, resolved):
        self.entries[resolved.slug] = resolved

    async def invalidate(self, slug):
        self.entries.pop(slug, None)


@pytest.mark.asyncio
async def test_resolve_fills_and_uses_cache(db_session, allocator):
    cache = MemoryCache()
    registry = MappingRegistry(allocator=allocator, cache=cache)
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="hot01")

    first = await registry.resolve(db_session, "hot01")
    assert cache.entries["hot01"] == first

    cache.entries["hot01"] = first.model_copy(update={"original_url": "https://cached.example"})
    assert (await registry.resolve(db_session, "hot01")).original_url == "https://cached.example"


@pytest.mark.asyncio
async def test_rename_and_delete_invalidate_cache(db_session, allocator):
    cache = MemoryCache()
    registry = MappingRegistry(allocator=allocator, cache=cache)
    await registry.create(db_session, "https://example.com", OWNER, custom_slug="old01")
    await registry.resolve(db_session, "old01")

    await registry.rename(db_session, "old01", "new01", OWNER)
    assert "old01" not in cache.entries

    await registry.resolve(db_session, "new01")
    await registry.soft_delete(db_session, "new01", OWNER)
    assert "new01" not in cache.entries
    with pytest.raises(NotFoundError):
        await registry.resolve(db_session, "new01")


@pytest.mark.asyncio
async def test_slug_cache_disabled_without_redis():
    cache = SlugCache()
    resolved = ResolvedMapping(mapping_id="m", slug="abcde", original_url="https://example.com")

    await cache.set(resolved)
    assert await cache.get("abcde") is None
    await cache.invalidate("abcde")
    assert cache.key("abcde") == "slug:abcde"


class SilentAllocator(SlugAllocator):
    """Candidate source that runs dry without raising."""

    async def candidates(self, session):
        return
        yield


@pytest.mark.asyncio
async def test_create_fails_when_candidates_run_dry(db_session):
    registry = MappingRegistry(allocator=SilentAllocator())

    with pytest.raises(ResourceExhaustedError):
        await registry.create(db_session, "https://example.com", OWNER)

    assert await registry.list_for_owner(db_session, OWNER) == []
