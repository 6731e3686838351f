"""
NewsAPI.org adapter.

Keywords → /everything (full-text search, sortable by date).
No keywords → /top-headlines (supports category + country).
Records come back in NewsAPI's native shape (publishedAt, urlToImage,
source.name); the canonicalizer maps them.
"""

import logging
from typing import Any, Dict, List

from newsdesk.schemas import FetchParams, SourceTag
from newsdesk.sources.base import AdapterError, SourceAdapter

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
# Placeholder NewsAPI returns for articles pulled by the publisher
_REMOVED = "[Removed]"


class NewsAPIAdapter(SourceAdapter):
    source_tag = SourceTag.NEWSAPI.value
    min_interval_ms = 1000

    def is_available(self) -> bool:
        return bool(self.settings.newsapi_key)

    def _build_request(self, params: FetchParams):
        query: Dict[str, Any] = {"pageSize": min(params.limit, MAX_PAGE_SIZE)}

        if params.keywords and params.keywords.strip():
            endpoint = "/everything"
            query.update({
                "q": params.keywords.strip(),
                "language": params.language,
                "sortBy": "publishedAt",
            })
            if params.date_from:
                query["from"] = params.date_from.strftime("%Y-%m-%dT%H:%M:%S")
            if params.date_to:
                query["to"] = params.date_to.strftime("%Y-%m-%dT%H:%M:%S")
        else:
            endpoint = "/top-headlines"
            if params.category and params.category not in ("general", "all"):
                query["category"] = params.category
            if params.countries:
                # top-headlines takes a single country
                query["country"] = params.countries.split(",")[0].strip().lower()
            else:
                query["language"] = params.language

        return f"{self.settings.newsapi_base_url.rstrip('/')}{endpoint}", query

    async def fetch_articles(self, params: FetchParams) -> List[Dict[str, Any]]:
        url, query = self._build_request(params)
        data = await self._request_json(
            "GET", url, params=query, headers={"X-Api-Key": self.settings.newsapi_key},
        )

        if not isinstance(data, dict):
            raise AdapterError(self.source_tag, "malformed payload: body is not an object")
        if data.get("status") == "error":
            raise AdapterError(self.source_tag, f"API error: {data.get('message', 'unknown')}")

        items = self._require_list(data.get("articles"), "articles")
        records = []
        for item in items:
            if item.get("title") == _REMOVED:
                continue
            # top-headlines results are all in the requested category
            if "category" in query and not item.get("category"):
                item = {**item, "category": query["category"]}
            records.append(item)

        logger.info(f"NewsAPI: {len(records)} articles from {url.rsplit('/', 1)[-1]}")
        return records
