"""Redirect endpoint for slugs."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.core.database import get_async_session
from snaplink.core.exceptions import NotFoundError
from snaplink.core.observability import record_redirect
from snaplink.services import (
    MappingRegistry,
    VisitRecorder,
    get_mapping_registry,
    get_visit_recorder,
)

logger = structlog.get_logger()

router = APIRouter(tags=["redirect"])


@router.get("/{slug}")
async def redirect_to_original(
    request: Request,
    slug: str,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    registry: Annotated[MappingRegistry, Depends(get_mapping_registry)],
    recorder: Annotated[VisitRecorder, Depends(get_visit_recorder)],
) -> RedirectResponse:
    """Redirect a slug to its original URL.

    Flow:
    1. Resolve the slug (Redis cache, then database)
    2. Dead or deleted slugs get a plain 404
    3. Schedule the visit recording without awaiting it
    4. Redirect to original URL
    """
    try:
        resolved = await registry.resolve(session, slug)
    except NotFoundError:
        logger.info("Redirect failed - link not found", slug=slug)
        record_redirect(404)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link not found",
        ) from None

    # Fire-and-forget: the visitor never waits on, or sees errors from, recording
    recorder.dispatch(slug, request.headers.get("User-Agent"))

    logger.info(
        "Redirect",
        slug=slug,
        mapping_id=resolved.mapping_id,
    )
    record_redirect(307)

    return RedirectResponse(
        url=resolved.original_url,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
