"""Business logic services."""

from snaplink.services.registry import (
    MappingRegistry,
    get_mapping_registry,
    validate_original_url,
)
from snaplink.services.slug_allocator import (
    SlugAllocator,
    generate_slug,
    get_slug_allocator,
)
from snaplink.services.user_agent import (
    ClientInfo,
    UserAgentParser,
    get_user_agent_parser,
)
from snaplink.services.visit_recorder import (
    VisitRecorder,
    get_visit_recorder,
    stop_visit_recorder,
)

__all__ = [
    # Mappings
    "MappingRegistry",
    "get_mapping_registry",
    "validate_original_url",
    # Slugs
    "SlugAllocator",
    "generate_slug",
    "get_slug_allocator",
    # User agents
    "ClientInfo",
    "UserAgentParser",
    "get_user_agent_parser",
    # Visits
    "VisitRecorder",
    "get_visit_recorder",
    "stop_visit_recorder",
]
