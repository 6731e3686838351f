"""newsdesk: multi-source news ingestion, deduplication and story clustering."""

__version__ = "1.0.0"
