"""Health check router -- source status, fetch state, config summary."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from newsdesk import __version__
from newsdesk.api.dependencies import AppSettings, Cache

router = APIRouter()


@router.get("/")
async def root():
    return {"service": "newsdesk", "version": __version__}


@router.get("/health")
async def health(request: Request, settings: AppSettings, cache: Cache):
    registry = request.app.state.registry
    orchestrator = request.app.state.orchestrator

    sources = {}
    for adapter in registry:
        sources[adapter.source_tag] = {
            "available": adapter.is_available(),
            "min_interval_ms": adapter.min_interval_ms,
            "max_age_hours": settings.get_max_age_hours(adapter.source_tag),
            "fetch_state": cache.get_fetch_state(adapter.source_tag),
        }

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sources": sources,
        "source_health": orchestrator.health.status_report(),
        "config": {
            "fetch_timeout_seconds": settings.fetch_timeout_seconds,
            "max_concurrent_fetches": settings.max_concurrent_fetches,
            "similarity_threshold": settings.similarity_threshold,
            "cache_lookback_days": settings.cache_lookback_days,
        },
    }
