"""Cache API router -- store statistics and per-outlet stats."""

from fastapi import APIRouter

from newsdesk.api.dependencies import Cache

router = APIRouter()


@router.get("/stats")
async def cache_stats(cache: Cache):
    return cache.get_stats()


@router.get("/sources")
async def cache_sources(cache: Cache):
    outlets = cache.get_sources()
    return {"count": len(outlets), "sources": outlets}
