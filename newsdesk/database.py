"""
Article store: canonical articles, per-source fetch state and outlet stats.

Tables:
  - articles: Canonical Article rows plus their identity hashes (unique url)
  - source_fetch_state: Last successful fetch per upstream source tag
  - outlets: Per-outlet statistics, updated on every insert

The engine is picked from the SQLAlchemy URL: "sqlite://" is an in-memory
store shared across threads (tests), a file SQLite path is the default, any
other SQLAlchemy backend works for deployment.
"""

import logging
import os
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import (
    create_engine, event, Column, String, Integer, Float, Text, DateTime,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


# ── Models ───────────────────────────────────────────────────────────────────

class ArticleModel(Base):
    """Canonical article. Datetimes are stored as naive UTC."""
    __tablename__ = "articles"

    id = Column(String(32), primary_key=True)
    title = Column(Text, nullable=False)
    summary = Column(Text, default="")
    content = Column(Text)
    url = Column(String(2000), nullable=False, unique=True)
    source_name = Column(String(300), nullable=False, index=True)
    source_url = Column(String(2000), default="")
    author = Column(String(300), default="Unknown")
    published_at = Column(DateTime, nullable=False, index=True)
    fetched_at = Column(DateTime, nullable=False)
    image_url = Column(String(2000))
    category = Column(String(100), default="general", index=True)
    bias_score = Column(Float)
    credibility_score = Column(Float)
    social_score = Column(Integer, default=0)
    sentiment = Column(Float)
    api_source = Column(String(50), nullable=False, index=True)
    ai_analysis = Column(Text)  # JSON, opaque
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Identity keys (NULL when the text normalized to nothing)
    title_hash = Column(String(64), index=True)
    content_hash = Column(String(64), index=True)


class SourceFetchStateModel(Base):
    """Last successful fetch per upstream source tag."""
    __tablename__ = "source_fetch_state"

    source_tag = Column(String(50), primary_key=True)
    last_fetched_at = Column(DateTime, nullable=False)
    max_age_hours = Column(Float, nullable=False)
    article_count = Column(Integer, default=0)


class OutletModel(Base):
    """Per-outlet statistics (one row per source_name)."""
    __tablename__ = "outlets"

    name = Column(String(300), primary_key=True)
    source_url = Column(String(2000), default="")
    bias_score = Column(Float)
    credibility_score = Column(Float)
    api_source = Column(String(50))
    last_fetched = Column(DateTime)
    article_count = Column(Integer, default=0)


# ── Database class ───────────────────────────────────────────────────────────

def _enable_sqlite_savepoints(engine):
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside one transaction.

    pysqlite otherwise defers BEGIN until the first DML statement and a
    RELEASE of the outermost savepoint would commit the whole batch early.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _build_engine(url: str):
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, echo=False, pool_pre_ping=True)

    connect_args = {"check_same_thread": False}
    if not parsed.database or parsed.database == ":memory:":
        # One connection shared by every session, or each would see its own empty DB
        engine = create_engine(
            url, echo=False, connect_args=connect_args, poolclass=StaticPool,
        )
    else:
        directory = os.path.dirname(os.path.abspath(parsed.database))
        os.makedirs(directory, exist_ok=True)
        engine = create_engine(url, echo=False, connect_args=connect_args)

    _enable_sqlite_savepoints(engine)
    return engine


class Database:
    """Database manager. One instance per process, passed to the cache."""

    def __init__(self, database_url: Optional[str] = None):
        url = database_url or get_settings().database_url
        if "aiosqlite" in url:
            url = url.replace("sqlite+aiosqlite", "sqlite")

        self.url = url
        self.engine = _build_engine(url)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        # Every session on a StaticPool engine shares one DBAPI connection, so
        # sessions must not overlap or a reader joins the writer's transaction.
        self._session_lock = threading.RLock() if isinstance(self.engine.pool, StaticPool) else None

    def create_tables(self):
        """Create all tables and add any missing columns (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)
        self._migrate_columns()

    def _migrate_columns(self):
        """Add columns introduced after a store was first created (SQLite-compatible)."""
        from sqlalchemy import inspect as sa_inspect, text
        inspector = sa_inspect(self.engine)
        for table_name, model in [("articles", ArticleModel), ("outlets", OutletModel)]:
            if not inspector.has_table(table_name):
                continue
            existing = {c["name"] for c in inspector.get_columns(table_name)}
            for col in model.__table__.columns:
                if col.name in existing:
                    continue
                col_type = col.type.compile(self.engine.dialect)
                sql = f"ALTER TABLE {table_name} ADD COLUMN {col.name} {col_type}"
                with self.engine.begin() as conn:
                    conn.execute(text(sql))
                logger.info(f"Migration: added column {table_name}.{col.name} ({col_type})")

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        with self._session_lock or nullcontext():
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def dispose(self):
        self.engine.dispose()
