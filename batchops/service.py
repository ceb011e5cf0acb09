"""
Batch operations service.

Single entry point for the six operation types, progress subscription and
registry introspection. One instance is constructed per application context;
tests build a fresh one per test.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from batchops.codecs import ArtifactCache
from batchops.db.store import SQLStore, Store
from batchops.registry import OperationRegistry, ProgressCallback
from batchops.schemas import (
    BatchUpdateRequest,
    BulkCancelRescheduleRequest,
    BulkCreateRequest,
    ExportRequest,
    ImportRequest,
    MassMessageRequest,
    OperationRecord,
    OperationResult,
    OperationType,
)
from batchops.services.email_service import EmailService
from batchops.services.notification_service import NotificationDispatcher
from batchops.templates import TemplateCatalog, WorkshopTemplate
from batchops.utils.limits import BatchLimits
from batchops.workers import WORKERS, BatchWorker, WorkerContext

logger = logging.getLogger(__name__)


class BatchOperationsService:
    """Runs batch operations and exposes their progress."""

    def __init__(
        self,
        store: Optional[Store] = None,
        registry: Optional[OperationRegistry] = None,
        gateway: Optional[Any] = None,
        notifier: Optional[Any] = None,
        templates: Optional[TemplateCatalog] = None,
        artifacts: Optional[ArtifactCache] = None,
        limits: Optional[BatchLimits] = None,
    ):
        store = store if store is not None else SQLStore()
        gateway = gateway if gateway is not None else EmailService()
        self.context = WorkerContext(
            registry=registry or OperationRegistry(),
            store=store,
            gateway=gateway,
            notifier=notifier if notifier is not None else NotificationDispatcher(store, gateway),
            templates=templates or TemplateCatalog(),
            artifacts=artifacts or ArtifactCache(),
            limits=limits,
        )
        self._running_tasks: Dict[str, asyncio.Task] = {}

    @property
    def registry(self) -> OperationRegistry:
        return self.context.registry

    @property
    def templates(self) -> TemplateCatalog:
        return self.context.templates

    def _worker(self, operation_type: OperationType) -> BatchWorker:
        return WORKERS[OperationType(operation_type)](self.context)

    # === Operations ===

    async def bulk_create(
        self, request: BulkCreateRequest, on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult:
        return await self._worker(OperationType.BULK_CREATE).run(request, on_progress)

    async def mass_message(
        self, request: MassMessageRequest, on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult:
        return await self._worker(OperationType.MASS_MESSAGE).run(request, on_progress)

    async def batch_update(
        self, request: BatchUpdateRequest, on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult:
        return await self._worker(OperationType.BATCH_UPDATE).run(request, on_progress)

    async def bulk_cancel_reschedule(
        self, request: BulkCancelRescheduleRequest, on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult:
        return await self._worker(OperationType.BULK_CANCEL_RESCHEDULE).run(request, on_progress)

    async def export_data(
        self, request: ExportRequest, on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult:
        return await self._worker(OperationType.EXPORT).run(request, on_progress)

    async def import_data(
        self, request: ImportRequest, on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult:
        return await self._worker(OperationType.IMPORT).run(request, on_progress)

    def submit(
        self,
        operation_type: OperationType,
        request: Any,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[OperationRecord, "asyncio.Task[OperationResult]"]:
        """Register the operation now and run it as a background task.

        Must be called from a running event loop. The returned record is still
        ``pending``, so a caller can subscribe by id before any work starts.
        """
        worker = self._worker(operation_type)
        record = worker.prepare(request)
        if on_progress is not None:
            self.registry.publisher.subscribe(record.id, on_progress)

        task = asyncio.create_task(worker.execute(record.id, request))
        self._running_tasks[record.id] = task
        task.add_done_callback(lambda t, op_id=record.id: self._on_task_complete(op_id, t))
        return record, task

    def _on_task_complete(self, operation_id: str, task: asyncio.Task) -> None:
        self._running_tasks.pop(operation_id, None)
        if task.cancelled():
            logger.warning(f"Task for operation {operation_id} was cancelled before finishing")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Task for operation {operation_id} failed with exception: {error}")

    def get_running_tasks_count(self) -> int:
        return len(self._running_tasks)

    # === Progress and registry ===

    def subscribe(self, operation_id: str, callback: ProgressCallback) -> None:
        self.registry.publisher.subscribe(operation_id, callback)

    def unsubscribe(self, operation_id: str, callback: ProgressCallback) -> None:
        self.registry.publisher.unsubscribe(operation_id, callback)

    def get_operation(self, operation_id: str) -> Optional[OperationRecord]:
        return self.registry.get(operation_id)

    def list_active(self) -> List[OperationRecord]:
        return self.registry.list_active()

    def request_cancel(self, operation_id: str) -> bool:
        return self.registry.request_cancel(operation_id)

    def sweep_completed(self) -> int:
        return self.registry.sweep_completed()

    # === Templates and artifacts ===

    def list_templates(self) -> List[WorkshopTemplate]:
        return self.templates.list_templates()

    def fetch_export(self, download_url: str) -> Optional[bytes]:
        return self.context.artifacts.fetch(download_url)
