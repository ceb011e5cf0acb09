"""
Database engine and session management.

Builds the SQLAlchemy engine from ``BATCHOPS_DATABASE_URL`` and falls back to an
in-memory SQLite database shared through a static pool.
"""
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from batchops.db.models import Base

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"


def get_database_url() -> str:
    return os.getenv("BATCHOPS_DATABASE_URL") or DEFAULT_DATABASE_URL


def build_engine(url: str | None = None) -> Engine:
    """Create an engine; SQLite gets thread-tolerant settings, in-memory SQLite a static pool."""
    url = url or get_database_url()
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
    else:
        engine = create_engine(url, pool_pre_ping=True)
    # Schema is a single table; create it eagerly so every connection sees it
    Base.metadata.create_all(bind=engine)
    return engine


def build_session_factory(engine: Engine | None = None) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or build_engine())
