"""
Adapter registry: source tag → adapter.

Built once at startup and handed to the orchestrator. There is no
module-level instance; tests build their own registry of fake adapters.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional

import httpx

from newsdesk.config import Settings, get_settings
from newsdesk.sources.base import SourceAdapter
from newsdesk.sources.mediastack import MediaStackAdapter
from newsdesk.sources.newsapi import NewsAPIAdapter
from newsdesk.sources.newsapi_ai import NewsApiAiAdapter
from newsdesk.sources.rss import RSSAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Ordered mapping of source tag to adapter. Registering a tag twice replaces it."""

    def __init__(self, adapters: Iterable[SourceAdapter] = ()):
        self._adapters: Dict[str, SourceAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: SourceAdapter) -> SourceAdapter:
        if not adapter.source_tag:
            raise ValueError(f"{type(adapter).__name__} has no source_tag")
        if adapter.source_tag in self._adapters:
            logger.warning(f"Adapter for '{adapter.source_tag}' replaced by {type(adapter).__name__}")
        self._adapters[adapter.source_tag] = adapter
        return adapter

    def get(self, source_tag: str) -> Optional[SourceAdapter]:
        return self._adapters.get(source_tag)

    def tags(self) -> List[str]:
        return list(self._adapters)

    def available_tags(self) -> List[str]:
        return [tag for tag, adapter in self._adapters.items() if adapter.is_available()]

    def __contains__(self, source_tag: str) -> bool:
        return source_tag in self._adapters

    def __iter__(self) -> Iterator[SourceAdapter]:
        return iter(self._adapters.values())

    def __len__(self) -> int:
        return len(self._adapters)


def default_registry(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdapterRegistry:
    """Registry with the four shipped feeds. Adapters without an API key report unavailable."""
    settings = settings or get_settings()
    return AdapterRegistry([
        RSSAdapter(settings=settings, transport=transport),
        NewsAPIAdapter(settings=settings, transport=transport),
        NewsApiAiAdapter(settings=settings, transport=transport),
        MediaStackAdapter(settings=settings, transport=transport),
    ])
