"""Centralized constants for the transport and storage layers.

Single source of truth for header names, stream frames, endpoint paths and
cache categories shared by routers and services.
"""

from enum import Enum
from typing import FrozenSet

# =============================================================================
# HTTP SURFACE
# =============================================================================

SESSION_HEADER = "Mcp-Session-Id"

MCP_ENDPOINT = "/mcp"
LEGACY_SSE_ENDPOINT = "/sse"
LEGACY_MESSAGES_ENDPOINT = "/messages"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}

# =============================================================================
# STREAM FRAMES
# =============================================================================

KEEP_ALIVE_FRAME = "event: ping\ndata: keep-alive\n\n"

# =============================================================================
# DURABLE ACTOR NAMESPACES
# =============================================================================

SESSION_NAMESPACE = "sessions"
CACHE_NAMESPACE = "calendar-cache"

DEFAULT_PARTITION = "default"
DEFAULT_OWNER = "default"

# =============================================================================
# CACHE
# =============================================================================

CACHE_KEY_DELIMITER = ":"


class CacheCategory(str, Enum):
    """Resource categories stored in the cache, each with its own TTL."""
    CALENDARS = "calendars"
    EVENTS = "events"
    PREFERENCES = "preferences"


# Categories whose keys carry a sub-resource id (events:<owner>:<calendarId>)
CATEGORIES_WITH_RESOURCE_ID: FrozenSet[CacheCategory] = frozenset([
    CacheCategory.EVENTS,
])

CACHE_HIT = "HIT"
CACHE_MISS = "MISS"
