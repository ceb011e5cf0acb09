"""
SQLAlchemy models backing the document store.

Every named collection (workshops, tasks, users, ...) lives in one table of
JSON documents keyed by (collection, id).
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import declarative_base


def now_utc():
    """Return an aware UTC datetime for default/updated timestamps."""
    return datetime.now(timezone.utc)


Base = declarative_base()


class CollectionRecord(Base):
    __tablename__ = "collection_records"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), nullable=False)
    record_id = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index("ux_collection_records_collection_record_id", "collection", "record_id", unique=True),
    )
