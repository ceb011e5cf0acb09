"""
Service-level tests: background submission, cancellation, concurrency and audit.
"""
import asyncio

import pytest

from batchops.db import AUDIT_LOGS, WORKSHOPS
from batchops.schemas import (
    BulkCreateItem,
    BulkCreateRequest,
    MassMessageRequest,
    OperationStatus,
    OperationType,
    TargetFilter,
)
from batchops.templates import TaskTemplate


def _create_request(count=10, template_id="template_1"):
    return BulkCreateRequest(
        template_id=template_id,
        items=[BulkCreateItem(title=f"Session {i + 1}") for i in range(count)],
    )


@pytest.mark.asyncio
async def test_submit_returns_pending_record_before_work_starts(service, store):
    statuses = []

    record, task = service.submit(
        OperationType.BULK_CREATE, _create_request(3), on_progress=lambda p, s, r: statuses.append(s)
    )

    assert record.status == OperationStatus.PENDING
    assert service.get_operation(record.id).status == OperationStatus.PENDING
    assert statuses == []
    assert service.get_running_tasks_count() == 1

    result = await task
    await asyncio.sleep(0)

    assert result.operation.id == record.id
    assert result.operation.status == OperationStatus.COMPLETED
    assert statuses[0] == OperationStatus.IN_PROGRESS
    assert statuses[-1] == OperationStatus.COMPLETED
    assert service.get_running_tasks_count() == 0
    assert await store.count(WORKSHOPS) == 3


@pytest.mark.asyncio
async def test_cancel_during_run_keeps_committed_items(service, store):
    record_id = None

    def cancel_after_three(progress, status, record):
        if record.processed_items == 3:
            service.request_cancel(record_id)

    record, task = service.submit(OperationType.BULK_CREATE, _create_request(10), on_progress=cancel_after_three)
    record_id = record.id

    result = await task

    operation = result.operation
    assert operation.status == OperationStatus.CANCELLED
    assert operation.processed_items == 3
    assert operation.completed_at is not None
    assert result.success is False
    assert await store.count(WORKSHOPS) == 3


@pytest.mark.asyncio
async def test_submitted_operations_interleave(service, store):
    events = []

    def recorder(name):
        return lambda progress, status, record: events.append((name, status))

    first, first_task = service.submit(OperationType.BULK_CREATE, _create_request(5), on_progress=recorder("a"))
    second, second_task = service.submit(OperationType.BULK_CREATE, _create_request(5), on_progress=recorder("b"))

    results = await asyncio.gather(first_task, second_task)

    assert [r.operation.status for r in results] == [OperationStatus.COMPLETED, OperationStatus.COMPLETED]
    assert events.index(("b", OperationStatus.IN_PROGRESS)) < events.index(("a", OperationStatus.COMPLETED))
    assert await store.count(WORKSHOPS) == 10


@pytest.mark.asyncio
async def test_cancel_from_another_task_stops_the_loop(service, store):
    record, task = service.submit(OperationType.BULK_CREATE, _create_request(30))

    async def cancel_once_started():
        while service.get_operation(record.id).processed_items < 1:
            await asyncio.sleep(0)
        return service.request_cancel(record.id)

    cancelled = await asyncio.create_task(cancel_once_started())
    result = await task

    assert cancelled is True
    operation = result.operation
    assert operation.status == OperationStatus.CANCELLED
    assert 1 <= operation.processed_items < 30
    # an insert already in flight when the signal lands may still commit
    assert await store.count(WORKSHOPS) <= operation.processed_items + 1


@pytest.mark.asyncio
async def test_cancel_before_start_processes_nothing(service, store):
    record, task = service.submit(OperationType.BULK_CREATE, _create_request(5))

    assert service.request_cancel(record.id) is True
    result = await task

    assert result.operation.status == OperationStatus.CANCELLED
    assert result.operation.processed_items == 0
    assert await store.count(WORKSHOPS) == 0


@pytest.mark.asyncio
async def test_concurrency_limit_rejects_new_operation(service_factory, gateway, seed_participants, store):
    await seed_participants()
    release = asyncio.Event()

    async def slow_send(*args):
        await release.wait()
        return True

    gateway.send_batch.side_effect = slow_send
    service = service_factory(max_concurrent_operations=1)

    first, first_task = service.submit(
        OperationType.MASS_MESSAGE,
        MassMessageRequest(recipients=TargetFilter(type="all"), subject="Hi", content="Hello", content_type="text"),
    )
    await asyncio.sleep(0)
    assert service.get_operation(first.id).status == OperationStatus.IN_PROGRESS

    rejected = await service.bulk_create(_create_request(2))

    assert rejected.operation.status == OperationStatus.FAILED
    assert "Too many concurrent operations. Maximum allowed: 1" in rejected.operation.errors[0].message
    assert await store.count(WORKSHOPS) == 2  # only the seeded workshops

    release.set()
    first_result = await first_task
    assert first_result.operation.status == OperationStatus.COMPLETED


@pytest.mark.asyncio
async def test_list_active_and_sweep(service):
    await service.bulk_create(_create_request(1))
    await service.bulk_create(_create_request(1, template_id="missing"))

    statuses = sorted(r.status.value for r in service.list_active())
    assert statuses == ["completed", "failed"]

    assert service.sweep_completed() == 2
    assert service.list_active() == []


@pytest.mark.asyncio
async def test_subscribe_and_unsubscribe_by_id(service):
    seen = []

    def callback(progress, status, record):
        seen.append(progress)

    record, task = service.submit(OperationType.BULK_CREATE, _create_request(2))
    service.subscribe(record.id, callback)
    service.unsubscribe(record.id, callback)
    await task

    assert seen == []


@pytest.mark.asyncio
async def test_registered_template_drives_bulk_create(service, store):
    assert [t.id for t in service.list_templates()] == ["template_1", "template_2"]
    template = service.templates.register(
        "Data Clinic",
        defaults={"max_participants": 8, "location": "Library"},
        task_templates=[TaskTemplate(id="t1", title="Bring a dataset", due_date="-1 day")],
    )

    result = await service.bulk_create(
        BulkCreateRequest(
            template_id=template.id,
            items=[BulkCreateItem(title="Clinic", start_time="2024-04-02T10:00:00+00:00")],
            create_tasks=True,
        )
    )

    workshop = result.data[0]
    assert workshop["location"] == "Library"
    assert workshop["max_participants"] == 8
    assert workshop["template_id"] == template.id
    assert len(service.list_templates()) == 3


@pytest.mark.asyncio
async def test_audit_documents_for_start_and_finish(service, store):
    ok = await service.bulk_create(_create_request(1))
    failed = await service.bulk_create(_create_request(1, template_id="missing"))

    logs = await store.list(AUDIT_LOGS)
    assert [(log["target_id"], log["action_type"], log["status"]) for log in logs] == [
        (ok.operation.id, "operation_start", "success"),
        (ok.operation.id, "operation_complete", "success"),
        (failed.operation.id, "operation_start", "success"),
        (failed.operation.id, "operation_failed", "failure"),
    ]
    assert logs[1]["metadata"]["success_items"] == 1
    assert logs[1]["metadata"]["operation_type"] == "bulk_create"


@pytest.mark.asyncio
async def test_audit_failure_does_not_change_outcome(service_factory, flaky_store):
    store = flaky_store(fail_collections={AUDIT_LOGS})
    service = service_factory(store_override=store)

    result = await service.bulk_create(_create_request(2))

    assert result.success is True
    assert result.operation.status == OperationStatus.COMPLETED
    assert result.operation.errors == ()
