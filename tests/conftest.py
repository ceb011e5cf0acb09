from unittest.mock import AsyncMock

import pytest

from batchops.db import REGISTRATIONS, USERS, WORKSHOPS, SQLStore
from batchops.registry import OperationRegistry
from batchops.service import BatchOperationsService
from batchops.utils.limits import _LIMIT_DEFINITIONS, BatchLimits, refresh_batch_limits_cache


@pytest.fixture(autouse=True)
def reset_limits(monkeypatch):
    """Clear limit env vars + cached values for each test."""
    for definition in _LIMIT_DEFINITIONS.values():
        monkeypatch.delenv(definition.env_var, raising=False)
    refresh_batch_limits_cache()
    yield
    refresh_batch_limits_cache()


@pytest.fixture
def store():
    """Fresh in-memory store per test."""
    return SQLStore()


@pytest.fixture
def registry():
    return OperationRegistry()


@pytest.fixture
def gateway():
    gw = AsyncMock()
    gw.send_batch.return_value = True
    gw.send_email.return_value = {"success": True, "message_id": "<test@example.com>"}
    return gw


@pytest.fixture
def notifier():
    dispatcher = AsyncMock()
    dispatcher.notify_owner_of_new_items.return_value = {"success": 1, "failed": 0}
    dispatcher.notify_owner_of_changes.return_value = {"success": 1, "failed": 0}
    dispatcher.send_workshop_update.return_value = {"success": 1, "failed": 0}
    dispatcher.send_workshop_cancellation.return_value = {"success": 1, "failed": 0}
    return dispatcher


@pytest.fixture
def service(store, registry, gateway, notifier):
    return BatchOperationsService(store=store, registry=registry, gateway=gateway, notifier=notifier)


@pytest.fixture
def service_factory(store, registry, gateway, notifier):
    """Build a service over the shared fixtures with overridden limits or store."""

    def _build(store_override=None, **limits):
        return BatchOperationsService(
            store=store_override or store,
            registry=registry,
            gateway=gateway,
            notifier=notifier,
            limits=BatchLimits(**limits) if limits else None,
        )

    return _build


@pytest.fixture
def seed_participants(store):
    """Returns a coroutine that seeds two workshops with three users and four registrations.

    Alice is registered in both workshops; Carol has an upper-cased duplicate of Alice's email.
    """

    async def _seed():
        python = await store.create(WORKSHOPS, {"id": "ws-python", "title": "Intro to Python", "instructor": "u-terry"})
        rlang = await store.create(WORKSHOPS, {"id": "ws-r", "title": "R for Research", "instructor": "u-terry"})
        await store.create(USERS, {"id": "u-terry", "name": "Terry Teach", "email": "terry@example.com"})
        await store.create(USERS, {
            "id": "u-alice", "name": "Alice Smith", "email": "alice@example.com",
            "faculty": "Science", "department": "Physics",
        })
        await store.create(USERS, {
            "id": "u-bob", "name": "Bob Jones", "email": "bob@example.com",
            "faculty": "Arts", "department": "History",
        })
        await store.create(USERS, {
            "id": "u-carol", "name": "Carol King", "email": "ALICE@example.com",
            "faculty": "Science", "department": "Chemistry",
        })
        await store.create(REGISTRATIONS, {
            "user_id": "u-alice", "workshop_id": "ws-python", "registered_at": "2024-01-05T10:00:00+00:00",
        })
        await store.create(REGISTRATIONS, {
            "user_id": "u-bob", "workshop_id": "ws-python", "registered_at": "2024-02-10T10:00:00+00:00",
        })
        await store.create(REGISTRATIONS, {
            "user_id": "u-alice", "workshop_id": "ws-r", "registered_at": "2024-03-01T10:00:00+00:00",
        })
        await store.create(REGISTRATIONS, {
            "user_id": "u-carol", "workshop_id": "ws-r", "registered_at": "2024-03-02T10:00:00+00:00",
        })
        return {"workshops": [python["id"], rlang["id"]]}

    return _seed


@pytest.fixture
def seed_workshops(store):
    """Returns a coroutine that creates ``count`` workshops and returns their ids."""

    async def _seed(count=3, **fields):
        ids = []
        for i in range(count):
            workshop = await store.create(WORKSHOPS, {
                "title": f"Workshop {i + 1}",
                "instructor": "u-terry",
                "max_participants": 10 * (i + 1),
                "status": "scheduled",
                **fields,
            })
            ids.append(workshop["id"])
        return ids

    return _seed


class FlakyStore(SQLStore):
    """SQLStore that fails writes for chosen collections/titles."""

    def __init__(self, fail_titles=(), fail_collections=()):
        super().__init__()
        self.fail_titles = set(fail_titles)
        self.fail_collections = set(fail_collections)

    async def create(self, collection, data):
        if collection in self.fail_collections or (
            collection == WORKSHOPS and data.get("title") in self.fail_titles
        ):
            raise RuntimeError("database unavailable")
        return await super().create(collection, data)


@pytest.fixture
def flaky_store():
    return FlakyStore
