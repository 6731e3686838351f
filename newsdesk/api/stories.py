"""Stories API router -- same-event clusters built on demand from the article set."""

import logging

from fastapi import APIRouter, HTTPException, Query

from newsdesk.api.dependencies import Clusterer, Orchestrator, Params
from newsdesk.api.schemas import StoryListResponse
from newsdesk.news.fetcher import AllSourcesFailedError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=StoryListResponse)
async def list_stories(
    orchestrator: Orchestrator,
    clusterer: Clusterer,
    params: Params,
    blindspots_only: bool = Query(False, description="Only single-perspective stories"),
):
    """Cluster the current article set into multi-outlet stories, most relevant first."""
    try:
        result = await orchestrator.fetch(params)
    except AllSourcesFailedError as e:
        logger.error(f"Story fetch failed: {e}")
        raise HTTPException(status_code=502, detail={"message": str(e), "errors": e.errors})

    stories = clusterer.cluster(result.articles)
    if blindspots_only:
        stories = [s for s in stories if s.is_blindspot]

    return StoryListResponse(
        count=len(stories),
        article_count=len(result.articles),
        stories=stories,
        errors=result.errors,
    )
