"""Resource Cache sub-protocol routes.

Each ``{partition}`` addresses an independent durable Resource Cache. The
TTL applied to a read always comes from the key's category.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import ORJSONResponse

from constants import CACHE_HIT, CACHE_MISS, DEFAULT_OWNER
from core.container import container
from core.errors import BackendError, NotFoundError, ValidationError
from core.logging import get_logger
from services.actors import ActorDirectory
from services.resource_cache import CacheKey, CachePolicy, ResourceCache

logger = get_logger(__name__)
router = APIRouter(prefix="/internal/cache/{partition}", tags=["cache"])


def get_resource_cache(
    partition: str,
    directory: ActorDirectory = Depends(lambda: container.resource_caches())
) -> ResourceCache:
    return directory.get(partition)


def get_cache_policy() -> CachePolicy:
    return container.cache_policy()


def get_owner_id(user_id: Optional[str] = Query(default=None, alias="userId")) -> str:
    """Absent or blank ``userId`` means the default owner."""
    return user_id or DEFAULT_OWNER


async def _read(cache: ResourceCache, policy: CachePolicy, key: CacheKey) -> ORJSONResponse:
    hit = await cache.get(key, policy.ttl_for(key.category))
    if hit is None:
        return ORJSONResponse(
            status_code=404,
            content={"error": "Cache miss"},
            headers={"X-Cache": CACHE_MISS},
        )
    return ORJSONResponse(
        content=hit.data,
        headers={"X-Cache": CACHE_HIT, "X-Cache-Age": str(hit.age_ms)},
    )


async def _write(cache: ResourceCache, key: CacheKey, request: Request) -> dict:
    try:
        data: Any = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e
    try:
        await cache.put(key, data)
    except BackendError as e:
        logger.error("Cache write failed", cache_key=str(key), detail=e.detail)
        raise BackendError("Failed to update cache", detail=e.detail) from e
    return {"success": True}


@router.get("/calendars")
async def get_calendars(
    user_id: str = Depends(get_owner_id),
    cache: ResourceCache = Depends(get_resource_cache),
    policy: CachePolicy = Depends(get_cache_policy)
):
    return await _read(cache, policy, CacheKey.calendars(user_id))


@router.put("/calendars")
async def put_calendars(
    request: Request,
    user_id: str = Depends(get_owner_id),
    cache: ResourceCache = Depends(get_resource_cache)
):
    return await _write(cache, CacheKey.calendars(user_id), request)


@router.get("/events/{calendar_id}")
async def get_events(
    calendar_id: str,
    user_id: str = Depends(get_owner_id),
    cache: ResourceCache = Depends(get_resource_cache),
    policy: CachePolicy = Depends(get_cache_policy)
):
    return await _read(cache, policy, CacheKey.events(user_id, calendar_id))


@router.put("/events/{calendar_id}")
async def put_events(
    calendar_id: str,
    request: Request,
    user_id: str = Depends(get_owner_id),
    cache: ResourceCache = Depends(get_resource_cache)
):
    return await _write(cache, CacheKey.events(user_id, calendar_id), request)


@router.get("/preferences")
async def get_preferences(
    user_id: str = Depends(get_owner_id),
    cache: ResourceCache = Depends(get_resource_cache),
    policy: CachePolicy = Depends(get_cache_policy)
):
    return await _read(cache, policy, CacheKey.preferences(user_id))


@router.put("/preferences")
async def put_preferences(
    request: Request,
    user_id: str = Depends(get_owner_id),
    cache: ResourceCache = Depends(get_resource_cache)
):
    return await _write(cache, CacheKey.preferences(user_id), request)


@router.delete("/clear")
async def clear_cache(
    user_id: str = Depends(get_owner_id),
    cache: ResourceCache = Depends(get_resource_cache)
):
    cleared = await cache.clear_for_owner(user_id)
    if cleared == 0:
        raise NotFoundError("No cached entries for userId", success=False, clearedEntries=0)
    return {"success": True, "clearedEntries": cleared}
