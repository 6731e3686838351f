"""MediaStack adapter (GET /news). Native record shape: published_at, source (str), image."""

import logging
from typing import Any, Dict, List

from newsdesk.schemas import FetchParams, SourceTag
from newsdesk.sources.base import AdapterError, SourceAdapter

logger = logging.getLogger(__name__)

MAX_LIMIT = 100


class MediaStackAdapter(SourceAdapter):
    source_tag = SourceTag.MEDIASTACK.value
    min_interval_ms = 1000

    def is_available(self) -> bool:
        return bool(self.settings.mediastack_api_key)

    def _build_query(self, params: FetchParams) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "access_key": self.settings.mediastack_api_key,
            "languages": params.language,
            "sort": "published_desc",
            "limit": min(params.limit, MAX_LIMIT),
        }
        if params.keywords:
            query["keywords"] = params.keywords
        if params.category and params.category not in ("general", "all"):
            query["categories"] = params.category
        if params.countries:
            query["countries"] = params.countries
        if params.date_from:
            end = params.date_to.strftime("%Y-%m-%d") if params.date_to else ""
            query["date"] = f"{params.date_from.strftime('%Y-%m-%d')},{end}".rstrip(",")
        return query

    async def fetch_articles(self, params: FetchParams) -> List[Dict[str, Any]]:
        url = f"{self.settings.mediastack_base_url.rstrip('/')}/news"
        data = await self._request_json("GET", url, params=self._build_query(params))

        if not isinstance(data, dict):
            raise AdapterError(self.source_tag, "malformed payload: body is not an object")
        # MediaStack reports some failures (bad key, quota) with HTTP 200 + "error"
        if data.get("error"):
            error = data["error"]
            message = error.get("info") or error.get("message") if isinstance(error, dict) else error
            raise AdapterError(self.source_tag, f"API error: {message}")

        records = self._require_list(data.get("data"), "data")
        logger.info(f"MediaStack: {len(records)} articles")
        return records
