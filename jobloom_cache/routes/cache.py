"""
Cache admin routes.

Endpoints:
  GET    /api/cache/stats          — Stats for every registered cache
  GET    /api/cache/{name}/stats   — Stats for one cache
  POST   /api/cache/{name}/prune   — Remove expired entries now
  DELETE /api/cache/{name}/keys    — Invalidate keys by prefix (?prefix=)
  DELETE /api/cache/{name}         — Drop every entry

An unknown cache name yields 404.  Counters are per process: with several
workers each one reports its own caches.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from jobloom_cache.cache import Cache, CacheStats
from jobloom_cache.helpers import invalidate_by_prefix
from jobloom_cache.registry import CacheRegistry, UnknownCacheError

logger = logging.getLogger(__name__)

router = APIRouter()


class CacheStatsResponse(BaseModel):
    """Counters for a single cache."""

    hits: int = Field(..., ge=0)
    misses: int = Field(..., ge=0)
    stale_hits: int = Field(..., ge=0)
    evictions: int = Field(..., ge=0)
    size: int = Field(..., ge=0)
    hit_rate: float = Field(..., ge=0.0, le=1.0, description="hits / (hits + misses)")
    max_size: int = Field(..., ge=1)

    @classmethod
    def from_cache(cls, stats: CacheStats, cache: Cache) -> "CacheStatsResponse":
        return cls(
            hits=stats.hits,
            misses=stats.misses,
            stale_hits=stats.stale_hits,
            evictions=stats.evictions,
            size=stats.size,
            hit_rate=stats.hit_rate,
            max_size=cache.config.max_size,
        )


class PruneResponse(BaseModel):
    cache: str
    pruned: int


class InvalidateResponse(BaseModel):
    cache: str
    prefix: str
    invalidated: int


class ClearResponse(BaseModel):
    cache: str
    cleared: bool = True


def _registry(request: Request) -> CacheRegistry:
    return request.app.state.caches


def _lookup(request: Request, name: str) -> Cache:
    try:
        return _registry(request).get(name)
    except UnknownCacheError as exc:
        logger.warning("Cache admin request for unknown cache %r", name)
        raise HTTPException(status_code=404, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# GET /stats — all caches
# ---------------------------------------------------------------------------

@router.get("/stats", summary="Stats for all caches")
async def get_all_stats(request: Request) -> dict[str, CacheStatsResponse]:
    registry = _registry(request)
    return {
        name: CacheStatsResponse.from_cache(cache.get_stats(), cache)
        for name, cache in registry.items()
    }


# ---------------------------------------------------------------------------
# GET /{name}/stats — one cache
# ---------------------------------------------------------------------------

@router.get("/{name}/stats", summary="Stats for one cache")
async def get_cache_stats(name: str, request: Request) -> CacheStatsResponse:
    cache = _lookup(request, name)
    return CacheStatsResponse.from_cache(cache.get_stats(), cache)


# ---------------------------------------------------------------------------
# POST /{name}/prune
# ---------------------------------------------------------------------------

@router.post("/{name}/prune", summary="Remove expired entries")
async def prune_cache(name: str, request: Request) -> PruneResponse:
    """Run an immediate prune instead of waiting for the scheduler."""
    cache = _lookup(request, name)
    pruned = cache.prune()
    logger.info("Manual prune of %r removed %d entries", name, pruned)
    return PruneResponse(cache=name, pruned=pruned)


# ---------------------------------------------------------------------------
# DELETE /{name}/keys?prefix=
# ---------------------------------------------------------------------------

@router.delete("/{name}/keys", summary="Invalidate keys by prefix")
async def invalidate_keys(
    name: str,
    request: Request,
    prefix: str = Query(..., min_length=1, description="Key prefix, e.g. 'user:123:'"),
) -> InvalidateResponse:
    cache = _lookup(request, name)
    invalidated = invalidate_by_prefix(cache, prefix)
    logger.info("Invalidated %d entries in %r with prefix %r", invalidated, name, prefix)
    return InvalidateResponse(cache=name, prefix=prefix, invalidated=invalidated)


# ---------------------------------------------------------------------------
# DELETE /{name}
# ---------------------------------------------------------------------------

@router.delete("/{name}", summary="Clear a cache")
async def clear_cache(name: str, request: Request) -> ClearResponse:
    cache = _lookup(request, name)
    cache.clear()
    logger.info("Cleared cache %r", name)
    return ClearResponse(cache=name)
