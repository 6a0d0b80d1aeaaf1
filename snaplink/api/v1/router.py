"""API v1 router - aggregates all v1 endpoints."""

from fastapi import APIRouter

from snaplink.api.v1.mappings import router as mappings_router

router = APIRouter(prefix="/api/v1")

router.include_router(mappings_router)


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
