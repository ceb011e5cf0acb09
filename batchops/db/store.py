"""
Persistent store used by the batch executors.

``Store`` is the async contract the engine depends on; ``SQLStore`` keeps JSON
documents per named collection through SQLAlchemy.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from contextlib import contextmanager, nullcontext
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import TypeAdapter
from sqlalchemy.orm import Session, sessionmaker

from batchops.db.database import build_session_factory
from batchops.db.models import CollectionRecord, now_utc
from batchops.errors import RecordNotFoundError

logger = logging.getLogger(__name__)

WORKSHOPS = "workshops"
TASKS = "tasks"
USERS = "users"
REGISTRATIONS = "registrations"
SUBMISSIONS = "submissions"
NOTIFICATIONS = "notifications"
AUDIT_LOGS = "audit_logs"

_json_adapter: TypeAdapter[Any] = TypeAdapter(Any)

T = TypeVar("T")


@runtime_checkable
class Store(Protocol):
    """Async document store keyed by collection name and record id."""

    async def create(self, collection: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Persist a new document and return it with its assigned ``id``."""
        ...

    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def list(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Documents in insertion order matching every filter."""
        ...

    async def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge changes into a document. Raises RecordNotFoundError when missing."""
        ...

    async def delete(self, collection: str, record_id: str) -> bool:
        ...

    async def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        ...


def _matches(data: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    """Equality per key; list/tuple/set filter values mean membership."""
    if not filters:
        return True
    for key, expected in filters.items():
        value = data.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class SQLStore:
    """Store implementation over a single SQLAlchemy table of JSON documents.

    Session work runs in a worker thread, so every call is a suspension point
    for the event loop. SQLite connections are shared under a static pool and
    are used by one thread at a time.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or build_session_factory()
        bind = self._session_factory.kw.get("bind")
        self._lock = threading.Lock() if bind is not None and bind.dialect.name == "sqlite" else nullcontext()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._lock:
            db = self._session_factory()
            try:
                yield db
            finally:
                db.close()

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(fn, *args)

    @staticmethod
    def _query(db: Session, collection: str):
        return db.query(CollectionRecord).filter(CollectionRecord.collection == collection)

    def _create_sync(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        with self._session() as db:
            db.add(CollectionRecord(collection=collection, record_id=document["id"], data=document))
            db.commit()
        return document

    async def create(self, collection: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        document = _json_adapter.dump_python(dict(data), mode="json")
        document["id"] = str(document.get("id") or uuid.uuid4())
        document.setdefault("created_at", now_utc().isoformat())
        return await self._run(self._create_sync, collection, document)

    def _get_sync(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._session() as db:
            row = self._query(db, collection).filter(CollectionRecord.record_id == record_id).first()
            return dict(row.data) if row else None

    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        return await self._run(self._get_sync, collection, str(record_id))

    def _list_sync(self, collection: str, filters: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        with self._session() as db:
            rows = self._query(db, collection).order_by(CollectionRecord.seq).all()
            return [dict(row.data) for row in rows if _matches(row.data, filters)]

    async def list(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self._run(self._list_sync, collection, filters)

    def _update_sync(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        with self._session() as db:
            row = self._query(db, collection).filter(CollectionRecord.record_id == record_id).first()
            if row is None:
                raise RecordNotFoundError(collection, record_id)
            merged = dict(row.data)
            merged.update(changes)
            merged["id"] = row.record_id
            merged["updated_at"] = now_utc().isoformat()
            # JSON columns are not mutation-tracked; assign a new value
            row.data = merged
            db.commit()
            return merged

    async def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        normalized = _json_adapter.dump_python(dict(changes), mode="json")
        return await self._run(self._update_sync, collection, str(record_id), normalized)

    def _delete_sync(self, collection: str, record_id: str) -> bool:
        with self._session() as db:
            deleted = self._query(db, collection).filter(CollectionRecord.record_id == record_id).delete()
            db.commit()
            return bool(deleted)

    async def delete(self, collection: str, record_id: str) -> bool:
        return await self._run(self._delete_sync, collection, str(record_id))

    def _count_sync(self, collection: str) -> int:
        with self._session() as db:
            return self._query(db, collection).count()

    async def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        if not filters:
            return await self._run(self._count_sync, collection)
        return len(await self.list(collection, filters))
