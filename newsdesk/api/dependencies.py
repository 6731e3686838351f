"""FastAPI dependency injection -- Depends() patterns using app.state from lifespan."""

from datetime import datetime
from typing import Annotated, Optional

from fastapi import Depends, Query, Request

from newsdesk.config import Settings
from newsdesk.news.fetcher import FetchOrchestrator
from newsdesk.schemas import FetchParams
from newsdesk.stories.clustering import StoryClusterer
from newsdesk.tools.article_cache import ArticleCache


def get_cache(request: Request) -> ArticleCache:
    return request.app.state.cache


def get_orchestrator(request: Request) -> FetchOrchestrator:
    return request.app.state.orchestrator


def get_clusterer(request: Request) -> StoryClusterer:
    return request.app.state.clusterer


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def fetch_params(
    keywords: Optional[str] = Query(None, description="Search terms"),
    category: Optional[str] = Query(None, description="Category, 'all' for no filter"),
    source: Optional[str] = Query(None, description="Outlet name (substring match)"),
    countries: Optional[str] = Query(None, description="Comma-separated ISO country codes"),
    language: str = Query("en"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    sources: Optional[str] = Query(None, description="Comma-separated upstream source tags"),
    force_refresh: bool = Query(False),
) -> FetchParams:
    return FetchParams(
        keywords=keywords,
        category=category,
        source=source,
        countries=countries,
        language=language,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        sources=[s.strip() for s in sources.split(",") if s.strip()] if sources else None,
        force_refresh=force_refresh,
    )


# Type aliases for cleaner route signatures
Cache = Annotated[ArticleCache, Depends(get_cache)]
Orchestrator = Annotated[FetchOrchestrator, Depends(get_orchestrator)]
Clusterer = Annotated[StoryClusterer, Depends(get_clusterer)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Params = Annotated[FetchParams, Depends(fetch_params)]
