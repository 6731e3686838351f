"""
newsdesk - Main Entry Point.
FastAPI server and CLI interface.
"""

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsdesk import __version__
from newsdesk.api import articles, cache as cache_api, health, stories
from newsdesk.config import Settings, get_settings
from newsdesk.database import Database
from newsdesk.news.fetcher import AllSourcesFailedError, FetchOrchestrator
from newsdesk.schemas import FetchParams
from newsdesk.sources.registry import AdapterRegistry, default_registry
from newsdesk.stories.clustering import StoryClusterer
from newsdesk.tools.article_cache import ArticleCache

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_components(settings: Settings, registry: Optional[AdapterRegistry] = None) -> dict:
    """Wire database → cache → orchestrator → clusterer. Shared by the server and the CLI."""
    db = Database(settings.database_url)
    db.create_tables()
    article_cache = ArticleCache(db)
    registry = registry if registry is not None else default_registry(settings)
    return {
        "db": db,
        "cache": article_cache,
        "registry": registry,
        "orchestrator": FetchOrchestrator(registry, article_cache, settings=settings),
        "clusterer": StoryClusterer(threshold=settings.similarity_threshold),
    }


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[AdapterRegistry] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        components = build_components(settings, registry)
        components["cache"].clean_old(days_to_keep=settings.cache_retention_days)
        app.state.settings = settings
        for name, component in components.items():
            setattr(app.state, name, component)
        logger.info(
            f"newsdesk started: {len(components['registry'])} sources registered, "
            f"available: {components['registry'].available_tags()}"
        )
        yield
        components["db"].dispose()

    app = FastAPI(
        title="newsdesk",
        description="Multi-source news ingestion, deduplication and story clustering",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(health.router, tags=["health"])
    app.include_router(articles.router, prefix="/articles", tags=["articles"])
    app.include_router(stories.router, prefix="/stories", tags=["stories"])
    app.include_router(cache_api.router, prefix="/cache", tags=["cache"])
    return app


app = create_app()


# CLI Runner
async def run_once(args: argparse.Namespace, settings: Settings) -> int:
    """Fetch once and print the story clusters. Returns the process exit code."""
    components = build_components(settings)
    params = FetchParams(
        keywords=args.keywords,
        category=args.category,
        limit=args.limit or settings.default_limit,
        sources=args.sources.split(",") if args.sources else None,
        force_refresh=args.refresh,
    )

    try:
        result = await components["orchestrator"].fetch(params)
    except AllSourcesFailedError as e:
        logger.error(str(e))
        return 1
    finally:
        components["db"].dispose()

    clusters = components["clusterer"].cluster(result.articles)

    print("\n" + "=" * 60)
    print("NEWSDESK")
    print("=" * 60)
    print(f"Articles: {len(result.articles)} ({'cache' if result.cache_hit else 'fetched'})")
    print(f"Saved: {result.saved_count}  Duplicates: {result.duplicate_count}  Malformed: {result.dropped_count}"
          f"  Save errors: {result.save_error_count}")
    if result.errors:
        print(f"\nSource errors: {len(result.errors)}")
        for tag, error in result.errors.items():
            print(f"   - {tag}: {error}")

    print(f"\nStories: {len(clusters)}")
    for cluster in clusters[: args.stories]:
        dist = cluster.bias_distribution
        flag = "  [BLINDSPOT]" if cluster.is_blindspot else ""
        print(f"\n* {cluster.representative.title}{flag}")
        print(f"  {cluster.source_count} sources: {', '.join(cluster.sources)}")
        print(f"  L {dist.left}% / C {dist.center}% / R {dist.right}%  relevance {cluster.relevance_score:.2f}")
    print("=" * 60 + "\n")
    return 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="newsdesk - news ingestion and story clustering")
    parser.add_argument("--server", action="store_true", help="Start the FastAPI server")
    parser.add_argument("--host", default=None, help="Server host (default: API_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Server port (default: API_PORT)")
    parser.add_argument("--keywords", default=None, help="Search terms")
    parser.add_argument("--category", default=None, help="Category filter")
    parser.add_argument("--sources", default=None, help="Comma-separated source tags (default: all)")
    parser.add_argument("--limit", type=int, default=None, help="Max articles (default: DEFAULT_LIMIT)")
    parser.add_argument("--stories", type=int, default=10, help="Stories to print (default: 10)")
    parser.add_argument("--refresh", action="store_true", help="Ignore cache freshness")
    return parser.parse_args(argv)


def main(argv=None):
    """Entry point for CLI."""
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.server:
        import uvicorn
        host = args.host or settings.api_host
        port = args.port or settings.api_port
        logger.info(f"Starting server on {host}:{port}...")
        uvicorn.run(app, host=host, port=port)
        return 0

    return asyncio.run(run_once(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())
