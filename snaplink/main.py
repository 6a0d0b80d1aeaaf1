"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

from snaplink.api.redirect import router as redirect_router
from snaplink.api.v1.router import router as v1_router
from snaplink.core.config import get_settings
from snaplink.core.database import close_db, init_db
from snaplink.core.exceptions import register_exception_handlers
from snaplink.core.middleware import SecurityHeadersMiddleware
from snaplink.core.observability import (
    RequestContextMiddleware,
    setup_observability,
)
from snaplink.core.redis import close_redis
from snaplink.services import get_visit_recorder, stop_visit_recorder

settings = get_settings()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting Snaplink", version=settings.app_version)
    if settings.database_create_tables:
        await init_db()
        logger.info("Database tables created")
    yield
    logger.info("Shutting down Snaplink")
    await stop_visit_recorder()
    logger.info("Pending visits recorded")
    await close_redis()
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Short links with visit analytics",
    lifespan=lifespan,
)

setup_observability(app)
register_exception_handlers(app)

# Last added runs outermost
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=not settings.debug)
app.add_middleware(RequestContextMiddleware)

app.include_router(v1_router)
# Catch-all /{slug}; registered last so fixed routes win
app.include_router(redirect_router)


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    return {"service": settings.app_name, "version": settings.app_version}


@app.get("/api/stats", include_in_schema=False)
async def service_stats() -> dict:
    """Counters of the in-process visit recorder."""
    return {"visit_recorder": get_visit_recorder().stats}
