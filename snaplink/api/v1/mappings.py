"""Mapping CRUD and analytics endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.aggregators import AnalyticsAggregator, get_analytics_aggregator
from snaplink.core.database import get_async_session
from snaplink.core.deps import CurrentOwner
from snaplink.core.observability import record_mapping_operation
from snaplink.schemas import AnalyticsReport, MappingCreate, MappingRename, MappingResponse
from snaplink.services import MappingRegistry, get_mapping_registry

logger = structlog.get_logger()

router = APIRouter(prefix="/mappings", tags=["mappings"])

SessionDep = Annotated[AsyncSession, Depends(get_async_session)]
RegistryDep = Annotated[MappingRegistry, Depends(get_mapping_registry)]
AggregatorDep = Annotated[AnalyticsAggregator, Depends(get_analytics_aggregator)]


@router.post("", response_model=MappingResponse, status_code=status.HTTP_201_CREATED)
async def create_mapping(
    mapping_data: MappingCreate,
    owner_id: CurrentOwner,
    session: SessionDep,
    registry: RegistryDep,
) -> MappingResponse:
    """Create a new mapping.

    If `custom_slug` is provided, it will be used as the slug.
    Otherwise, a random slug will be generated.
    """
    mapping = await registry.create(
        session,
        original_url=str(mapping_data.original_url),
        owner_id=owner_id,
        custom_slug=mapping_data.custom_slug,
    )
    await session.commit()
    logger.info(
        "Mapping created",
        mapping_id=str(mapping.id),
        slug=mapping.slug,
        owner_id=owner_id,
        is_custom=mapping.is_custom,
    )
    record_mapping_operation("create")
    return MappingResponse.model_validate(mapping)


@router.get("", response_model=list[MappingResponse])
async def list_mappings(
    owner_id: CurrentOwner,
    session: SessionDep,
    registry: RegistryDep,
) -> list[MappingResponse]:
    """List all active mappings of the current owner, newest first."""
    mappings = await registry.list_for_owner(session, owner_id)
    return [MappingResponse.model_validate(mapping) for mapping in mappings]


@router.patch("/{slug}", response_model=MappingResponse)
async def rename_mapping(
    slug: str,
    rename_data: MappingRename,
    owner_id: CurrentOwner,
    session: SessionDep,
    registry: RegistryDep,
) -> MappingResponse:
    """Change the slug of a mapping. Visit history is kept."""
    mapping = await registry.rename(
        session,
        slug=slug,
        new_slug=rename_data.slug,
        owner_id=owner_id,
    )
    await session.commit()

    logger.info(
        "Mapping renamed",
        mapping_id=str(mapping.id),
        old_slug=slug,
        new_slug=mapping.slug,
        owner_id=owner_id,
    )
    record_mapping_operation("rename")
    return MappingResponse.model_validate(mapping)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_mapping(
    slug: str,
    owner_id: CurrentOwner,
    session: SessionDep,
    registry: RegistryDep,
) -> None:
    """Soft-delete a mapping. Its slug stays reserved."""
    await registry.soft_delete(session, slug=slug, owner_id=owner_id)
    await session.commit()

    logger.info("Mapping deleted", slug=slug, owner_id=owner_id)
    record_mapping_operation("delete")


@router.get("/{slug}/analytics", response_model=AnalyticsReport)
async def get_mapping_analytics(
    slug: str,
    owner_id: CurrentOwner,
    session: SessionDep,
    aggregator: AggregatorDep,
    time_filter: Annotated[
        str | None,
        Query(alias="timeFilter", description="day, week, month or year (default: last 30 days)"),
    ] = None,
) -> AnalyticsReport:
    """Get daily visits and browser/device/OS breakdowns for a mapping."""
    return await aggregator.query(
        session,
        slug=slug,
        owner_id=owner_id,
        time_filter=time_filter,
    )
