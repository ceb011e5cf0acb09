"""
Shared executor skeleton.

Every batch executor goes through the same phases: the record is created and
registered synchronously, setup resolves dependencies (first 10% of progress),
items are processed with a cancellation checkpoint before each one (next 80%),
and a best-effort finalization step runs before the terminal transition.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from batchops.audit import log_batch_operation
from batchops.codecs import ArtifactCache
from batchops.db.store import Store
from batchops.errors import OperationCancelled, OperationSetupError
from batchops.registry import OperationRegistry, ProgressCallback
from batchops.resolver import TargetResolver
from batchops.schemas import (
    ErrorSeverity,
    OperationRecord,
    OperationResult,
    OperationStatus,
    OperationSummary,
    OperationType,
)
from batchops.templates import TemplateCatalog
from batchops.utils.limits import BatchLimits, get_batch_limits

logger = logging.getLogger(__name__)

CREATION_BUDGET = 10
PROCESSING_BUDGET = 80


@dataclass
class WorkerContext:
    """Collaborators shared by every executor."""

    registry: OperationRegistry
    store: Store
    gateway: Any
    notifier: Any
    templates: TemplateCatalog = field(default_factory=TemplateCatalog)
    artifacts: ArtifactCache = field(default_factory=ArtifactCache)
    limits: Optional[BatchLimits] = None

    def __post_init__(self):
        self.resolver = TargetResolver(self.store)

    def get_limits(self) -> BatchLimits:
        return self.limits or get_batch_limits()


class OperationTracker:
    """Keeps an operation's counters and pushes them through the registry."""

    def __init__(self, registry: OperationRegistry, operation_id: str):
        self.registry = registry
        self.operation_id = operation_id
        self.total = 0
        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self.attempted = 0
        self.output: List[Any] = []
        self.payload: Any = None

    @property
    def record(self) -> Optional[OperationRecord]:
        return self.registry.get(self.operation_id)

    def start(self) -> None:
        self.registry.update(
            self.operation_id,
            status=OperationStatus.IN_PROGRESS,
            started_at=datetime.now(timezone.utc),
        )

    def set_total(self, total: int) -> None:
        self.total = max(0, total)
        self.registry.update(self.operation_id, total_items=self.total, progress=CREATION_BUDGET)

    def set_progress(self, progress: int) -> None:
        self.registry.update(self.operation_id, progress=progress)

    def checkpoint(self) -> None:
        """Raise OperationCancelled once cancellation was requested."""
        if self.registry.is_cancel_requested(self.operation_id):
            raise OperationCancelled(self.operation_id)

    def _progress(self) -> int:
        if not self.total:
            return CREATION_BUDGET
        return CREATION_BUDGET + round(min(self.attempted, self.total) / self.total * PROCESSING_BUDGET)

    def _push_counters(self) -> None:
        self.registry.update(
            self.operation_id,
            processed_items=self.processed,
            success_items=self.succeeded,
            failed_items=self.failed,
            progress=self._progress(),
        )

    def item_succeeded(self, output: Any = None) -> None:
        self.items_succeeded(1, [output] if output is not None else None)

    def items_succeeded(self, count: int, outputs: Optional[List[Any]] = None) -> None:
        self.attempted += count
        self.processed += count
        self.succeeded += count
        if outputs:
            self.output.extend(outputs)
        self._push_counters()

    def item_failed(self, message: str, item_id: Optional[str] = None, details: Optional[str] = None) -> None:
        self.items_failed(1, message, item_id, details)

    def items_failed(
        self, count: int, message: str, item_id: Optional[str] = None, details: Optional[str] = None
    ) -> None:
        self.registry.append_error(self.operation_id, message, details=details, item_id=item_id)
        self.attempted += count
        self.processed += count
        self.failed += count
        self._push_counters()

    def item_skipped(self, message: str, item_id: Optional[str] = None, details: Optional[str] = None) -> None:
        """Record a warning for an item that was not processed; counters other than progress are untouched."""
        self.warn(message, item_id, details)
        self.attempted += 1
        self.registry.update(self.operation_id, progress=self._progress())

    def warn(self, message: str, item_id: Optional[str] = None, details: Optional[str] = None) -> None:
        self.registry.append_error(
            self.operation_id, message, details=details, item_id=item_id, severity=ErrorSeverity.WARNING
        )


class BatchWorker:
    """Base class for the six executors.

    Subclasses implement ``describe`` and ``process``; ``finalize`` runs
    post-batch side effects and must not raise for best-effort failures.
    """

    operation_type: OperationType
    failure_label = "Batch operation"
    can_cancel = True

    def __init__(self, context: WorkerContext):
        self.context = context

    @property
    def registry(self) -> OperationRegistry:
        return self.context.registry

    @property
    def store(self) -> Store:
        return self.context.store

    @property
    def limits(self) -> BatchLimits:
        return self.context.get_limits()

    # Hooks

    def describe(self, request: Any) -> Tuple[str, Optional[str], int]:
        """Return (title, description, initial total_items)."""
        raise NotImplementedError

    async def process(self, tracker: OperationTracker, request: Any) -> None:
        raise NotImplementedError

    async def finalize(self, tracker: OperationTracker, request: Any) -> None:
        return None

    def is_successful(self, record: OperationRecord, tracker: OperationTracker, request: Any) -> bool:
        return record.status == OperationStatus.COMPLETED and record.success_items > 0

    def summarize(self, record: OperationRecord, tracker: OperationTracker, request: Any) -> OperationSummary:
        return OperationSummary(
            total=record.total_items,
            successful=record.success_items,
            failed=record.failed_items,
            warnings=record.warning_count,
        )

    def result_data(self, record: OperationRecord, tracker: OperationTracker, request: Any) -> Any:
        return tracker.payload if tracker.payload is not None else list(tracker.output)

    # Shared guards

    def ensure_item_limit(self, count: int) -> None:
        maximum = self.limits.max_items_per_operation
        if count > maximum:
            raise OperationSetupError(f"Too many items. Maximum allowed: {maximum}")

    def _ensure_capacity(self) -> None:
        maximum = self.limits.max_concurrent_operations
        if self.registry.running_count() >= maximum:
            raise OperationSetupError(f"Too many concurrent operations. Maximum allowed: {maximum}")

    # Lifecycle

    def prepare(self, request: Any) -> OperationRecord:
        """Create and register the record before any asynchronous work."""
        title, description, total = self.describe(request)
        return self.registry.create(
            self.operation_type, title, total, description, can_cancel=self.can_cancel
        )

    async def run(self, request: Any, on_progress: Optional[ProgressCallback] = None) -> OperationResult:
        record = self.prepare(request)
        if on_progress is not None:
            self.registry.publisher.subscribe(record.id, on_progress)
        return await self.execute(record.id, request)

    def _fail(self, operation_id: str, message: str) -> None:
        self.registry.append_error(operation_id, f"{self.failure_label} failed: {message}")
        self.registry.update(operation_id, status=OperationStatus.FAILED)

    async def execute(self, operation_id: str, request: Any) -> OperationResult:
        tracker = OperationTracker(self.registry, operation_id)
        try:
            self._ensure_capacity()
            tracker.start()
            logger.info(f"Starting {self.operation_type.value} operation {operation_id}")
            await log_batch_operation(self.store, tracker.record)
            await self.process(tracker, request)
            tracker.set_progress(CREATION_BUDGET + PROCESSING_BUDGET)
            await self.finalize(tracker, request)
        except OperationCancelled:
            logger.info(f"Operation {operation_id} stopped after cancellation")
            self.registry.update(operation_id, status=OperationStatus.CANCELLED)
        except OperationSetupError as e:
            logger.warning(f"Operation {operation_id} failed during setup: {e}")
            self._fail(operation_id, str(e))
        except Exception as e:
            logger.exception(f"Error executing {self.operation_type.value} operation {operation_id}")
            self._fail(operation_id, str(e))
        else:
            self.registry.update(operation_id, status=OperationStatus.COMPLETED, progress=100)

        record = self.registry.get(operation_id)
        logger.info(
            f"Operation {operation_id} finished as {record.status.value}: "
            f"{record.success_items} succeeded, {record.failed_items} failed"
        )
        await log_batch_operation(self.store, record)

        return OperationResult(
            success=self.is_successful(record, tracker, request),
            operation=record,
            data=self.result_data(record, tracker, request),
            summary=self.summarize(record, tracker, request),
        )
