"""
Source adapter contract.

An adapter turns FetchParams into a list of raw, feed-specific records
(plain dicts). It never canonicalizes, deduplicates or paces itself: the
canonicalizer, the dedup index and the orchestrator's IntervalGate do that.

Failure contract: a non-success upstream response or a payload that does not
have the expected shape raises AdapterError. An adapter never turns an
upstream failure into an empty list.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from newsdesk.config import Settings, get_settings
from newsdesk.schemas import FetchParams

logger = logging.getLogger(__name__)


class AdapterError(Exception):
    """Upstream feed failed: HTTP error, transport error or malformed payload."""

    def __init__(self, source_tag: str, message: str, status_code: Optional[int] = None):
        self.source_tag = source_tag
        self.status_code = status_code
        super().__init__(f"[{source_tag}] {message}")


class SourceAdapter:
    """Base class for upstream feed adapters.

    Subclasses set `source_tag` and `min_interval_ms`, and implement
    `fetch_articles`. `transport` lets tests plug in httpx.MockTransport.
    """

    source_tag: str = ""
    min_interval_ms: int = 1000

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def is_available(self) -> bool:
        """False when the adapter is not configured (e.g. missing API key)."""
        return True

    async def fetch_articles(self, params: FetchParams) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # ── HTTP helpers ──

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
        )

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        """Send one request and decode its JSON body, mapping every failure to AdapterError."""
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise AdapterError(self.source_tag, f"request failed: {e!r}") from e

        if response.status_code >= 400:
            raise AdapterError(
                self.source_tag,
                f"HTTP {response.status_code}: {self._error_message(response)}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise AdapterError(self.source_tag, f"response is not JSON: {e}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Best-effort upstream error text (NewsAPI "message", MediaStack "error.info")."""
        try:
            data = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):
                return str(error.get("info") or error.get("message") or error)[:200]
            return str(data.get("message") or error or data)[:200]
        return str(data)[:200]

    def _require_list(self, value: Any, what: str) -> List[Dict[str, Any]]:
        if not isinstance(value, list):
            raise AdapterError(self.source_tag, f"malformed payload: '{what}' is {type(value).__name__}, expected list")
        return [item for item in value if isinstance(item, dict)]
