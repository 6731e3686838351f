"""Articles API router -- cache-first reads through the fetch orchestrator.

Every list endpoint goes through FetchOrchestrator.fetch(), so a request for a
stale source refreshes it first. When every requested source fails and
nothing fresh is cached the response is 502 with the per-source errors.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from newsdesk.api.dependencies import Cache, Orchestrator, Params
from newsdesk.api.schemas import ArticleListResponse
from newsdesk.news.fetcher import AllSourcesFailedError
from newsdesk.schemas import Article, FetchParams

logger = logging.getLogger(__name__)

router = APIRouter()


async def _fetch(orchestrator, params: FetchParams) -> ArticleListResponse:
    try:
        result = await orchestrator.fetch(params)
    except AllSourcesFailedError as e:
        logger.error(f"Article fetch failed: {e}")
        raise HTTPException(status_code=502, detail={"message": str(e), "errors": e.errors})

    return ArticleListResponse(
        count=len(result.articles),
        articles=result.articles,
        cache_hit=result.cache_hit,
        errors=result.errors,
        fetched_sources=result.fetched_sources,
        skipped_sources=result.skipped_sources,
    )


@router.get("", response_model=ArticleListResponse)
async def list_articles(orchestrator: Orchestrator, params: Params):
    """Articles matching the filters, newest first."""
    return await _fetch(orchestrator, params)


@router.get("/search", response_model=ArticleListResponse)
async def search_articles(orchestrator: Orchestrator, params: Params, q: str = Query(..., min_length=1)):
    return await _fetch(orchestrator, params.model_copy(update={"keywords": q}))


@router.get("/category/{category_name}", response_model=ArticleListResponse)
async def articles_by_category(category_name: str, orchestrator: Orchestrator, params: Params):
    # The shared fetch_params dependency already owns a `category` query param.
    return await _fetch(orchestrator, params.model_copy(update={"category": category_name}))


@router.get("/source/{name}", response_model=ArticleListResponse)
async def articles_by_source(name: str, orchestrator: Orchestrator, params: Params):
    return await _fetch(orchestrator, params.model_copy(update={"source": name}))


@router.get("/trending", response_model=ArticleListResponse)
async def trending_articles(cache: Cache, limit: int = Query(20, ge=1, le=200)):
    """Last 24 hours by social score. Cache only, no refresh."""
    articles = cache.get_trending(limit=limit)
    return ArticleListResponse(count=len(articles), articles=articles, cache_hit=True)


@router.get("/bias", response_model=ArticleListResponse)
async def articles_by_bias(
    cache: Cache,
    min_bias: float = Query(-1.0, ge=-1.0, le=1.0),
    max_bias: float = Query(1.0, ge=-1.0, le=1.0),
    limit: int = Query(50, ge=1, le=500),
):
    """Articles whose bias score lies in [min_bias, max_bias]. Cache only."""
    articles = cache.get_by_bias(min_bias, max_bias, limit=limit)
    return ArticleListResponse(count=len(articles), articles=articles, cache_hit=True)


@router.get("/{article_id}", response_model=Article)
async def get_article(article_id: str, cache: Cache):
    article = cache.get_article(article_id)
    if article is None:
        raise HTTPException(404, "Article not found")
    return article
