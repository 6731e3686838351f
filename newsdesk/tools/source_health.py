"""
Source health tracking for upstream news feeds.

Keeps per-source success/failure history in memory so the API and the logs
can tell which feeds are degrading. Observability only: the orchestrator
never skips a source because of its health status.

Status:
  healthy   last call succeeded
  degraded  1..N-1 consecutive failures
  broken    N or more consecutive failures (N = broken_threshold)
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SourceStatus:
    source_tag: str
    failure_count: int = 0
    status: str = "healthy"          # healthy | degraded | broken
    last_error: Optional[str] = None
    last_failure_time: Optional[str] = None   # ISO UTC
    last_success_time: Optional[str] = None   # ISO UTC
    last_article_count: int = 0
    total_fetches: int = 0
    total_failures: int = 0


class SourceHealthTracker:
    """
    Per-source fetch health.

    Usage:
        tracker = SourceHealthTracker()
        try:
            records = await adapter.fetch_articles(params)
            tracker.record_success("newsapi", len(records))
        except Exception as e:
            tracker.record_failure("newsapi", str(e))
    """

    def __init__(self, broken_threshold: int = 3):
        self.broken_threshold = broken_threshold
        self._statuses: Dict[str, SourceStatus] = {}

    def _get(self, source_tag: str) -> SourceStatus:
        if source_tag not in self._statuses:
            self._statuses[source_tag] = SourceStatus(source_tag=source_tag)
        return self._statuses[source_tag]

    def record_failure(self, source_tag: str, error: str = ""):
        s = self._get(source_tag)
        s.failure_count += 1
        s.total_fetches += 1
        s.total_failures += 1
        s.last_error = error[:300]
        s.last_failure_time = _utcnow().isoformat()
        s.status = "broken" if s.failure_count >= self.broken_threshold else "degraded"
        logger.debug(f"Source '{source_tag}' failure #{s.failure_count}: {error[:60]}")

    def record_success(self, source_tag: str, article_count: int = 0):
        """Reset the consecutive-failure count on a successful fetch."""
        s = self._get(source_tag)
        if s.status != "healthy":
            logger.info(f"Source '{source_tag}' recovered after {s.failure_count} failures")
        s.failure_count = 0
        s.status = "healthy"
        s.total_fetches += 1
        s.last_article_count = article_count
        s.last_success_time = _utcnow().isoformat()

    def status(self, source_tag: str) -> str:
        return self._get(source_tag).status

    def status_report(self) -> Dict[str, dict]:
        return {k: asdict(v) for k, v in self._statuses.items()}
