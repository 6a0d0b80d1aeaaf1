"""Pydantic schemas."""

from snaplink.schemas.analytics import AnalyticsReport, CategoryCount, TimeseriesPoint
from snaplink.schemas.mapping import (
    MappingCreate,
    MappingRename,
    MappingResponse,
    ResolvedMapping,
)

__all__ = [
    "AnalyticsReport",
    "CategoryCount",
    "TimeseriesPoint",
    "MappingCreate",
    "MappingRename",
    "MappingResponse",
    "ResolvedMapping",
]
