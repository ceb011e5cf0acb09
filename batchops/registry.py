"""
Operation registry and progress publisher.

The registry owns every known operation record and its cancellation signal. Records
are replaced as a whole on each mutation, and every mutation is pushed to the
publisher's subscribers synchronously before ``update`` returns.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from batchops.schemas import (
    ErrorSeverity,
    LedgerEntry,
    OperationRecord,
    OperationStatus,
    OperationType,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, OperationStatus, OperationRecord], None]


def generate_operation_id() -> str:
    return f"batch_op_{uuid.uuid4().hex}"


def _clamp_progress(value: int) -> int:
    return max(0, min(100, int(value)))


class ProgressPublisher:
    """Maps operation id -> subscriber callbacks, delivered in subscription order."""

    def __init__(self):
        self._subscribers: Dict[str, List[ProgressCallback]] = {}

    def subscribe(self, operation_id: str, callback: ProgressCallback) -> None:
        self._subscribers.setdefault(operation_id, []).append(callback)

    def unsubscribe(self, operation_id: str, callback: ProgressCallback) -> None:
        callbacks = self._subscribers.get(operation_id)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def subscriber_count(self, operation_id: str) -> int:
        return len(self._subscribers.get(operation_id, []))

    def publish(self, record: OperationRecord) -> None:
        # Copy so a callback that unsubscribes itself does not skip its neighbour
        for callback in list(self._subscribers.get(record.id, [])):
            try:
                callback(record.progress, record.status, record)
            except Exception:
                logger.exception(f"Error in progress callback for operation {record.id}")

    def discard(self, operation_id: str) -> None:
        self._subscribers.pop(operation_id, None)


class OperationRegistry:
    """Owns operation records and their cancellation handles."""

    def __init__(self, publisher: Optional[ProgressPublisher] = None):
        self.publisher = publisher or ProgressPublisher()
        self._operations: Dict[str, OperationRecord] = {}
        self._cancel_signals: Dict[str, asyncio.Event] = {}

    def create(
        self,
        type: OperationType,
        title: str,
        total_items: int,
        description: Optional[str] = None,
        *,
        can_cancel: bool = True,
    ) -> OperationRecord:
        record = OperationRecord(
            id=generate_operation_id(),
            type=type,
            title=title,
            description=description,
            total_items=max(0, total_items),
            can_cancel=can_cancel,
        )
        self._operations[record.id] = record
        self._cancel_signals[record.id] = asyncio.Event()
        logger.debug(f"Registered operation {record.id} ({type.value})")
        return record

    def get(self, operation_id: str) -> Optional[OperationRecord]:
        return self._operations.get(operation_id)

    def list_active(self) -> List[OperationRecord]:
        """Snapshot of every known record; later mutations are not reflected."""
        return list(self._operations.values())

    def in_flight_count(self) -> int:
        return sum(1 for record in self._operations.values() if not record.is_terminal)

    def running_count(self) -> int:
        return sum(1 for record in self._operations.values() if record.status == OperationStatus.IN_PROGRESS)

    def update(self, operation_id: str, **changes: Any) -> Optional[OperationRecord]:
        """Merge changes into the stored record and notify subscribers.

        ``progress`` is clamped to [0, 100] and never goes below the previous
        value. Terminal records are left untouched.
        """
        current = self._operations.get(operation_id)
        if current is None:
            return None
        if current.is_terminal:
            logger.debug(f"Ignoring update to terminal operation {operation_id}: {sorted(changes)}")
            return current

        progress = changes.pop("progress", None)
        changes["progress"] = current.progress if progress is None else max(current.progress, _clamp_progress(progress))

        status = changes.get("status")
        if status is not None:
            status = OperationStatus(status)
            changes["status"] = status
            if status in (OperationStatus.COMPLETED, OperationStatus.FAILED, OperationStatus.CANCELLED):
                changes["completed_at"] = changes.get("completed_at") or datetime.now(timezone.utc)
        if "metadata" in changes:
            changes["metadata"] = {**current.metadata, **changes["metadata"]}

        updated = current.model_copy(update=changes)
        self._operations[operation_id] = updated
        self.publisher.publish(updated)
        return updated

    def append_error(
        self,
        operation_id: str,
        message: str,
        details: Optional[str] = None,
        item_id: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> Optional[LedgerEntry]:
        """Append a ledger entry; ledger entries are never edited after insertion."""
        current = self._operations.get(operation_id)
        if current is None or current.is_terminal:
            return None
        entry = LedgerEntry(
            id=f"error_{uuid.uuid4().hex[:12]}",
            message=message,
            details=details,
            item_id=item_id,
            timestamp=datetime.now(timezone.utc),
            severity=severity,
        )
        updated = current.model_copy(update={"errors": current.errors + (entry,)})
        self._operations[operation_id] = updated
        self.publisher.publish(updated)
        return entry

    def request_cancel(self, operation_id: str) -> bool:
        """Signal cancellation and mark the record cancelled.

        Advisory: the executor stops at its next checkpoint; already committed
        items stay committed.
        """
        record = self._operations.get(operation_id)
        if record is None or not record.can_cancel or record.is_terminal:
            return False
        signal = self._cancel_signals.get(operation_id)
        if signal is not None:
            signal.set()
        self.update(operation_id, status=OperationStatus.CANCELLED)
        logger.info(f"Cancellation requested for operation {operation_id}")
        return True

    def is_cancel_requested(self, operation_id: str) -> bool:
        signal = self._cancel_signals.get(operation_id)
        return bool(signal and signal.is_set())

    def sweep_completed(self) -> int:
        """Drop every terminal record with its subscribers and cancellation handle."""
        finished = [op_id for op_id, record in self._operations.items() if record.is_terminal]
        for op_id in finished:
            self._operations.pop(op_id, None)
            self._cancel_signals.pop(op_id, None)
            self.publisher.discard(op_id)
        if finished:
            logger.info(f"Swept {len(finished)} finished operations")
        return len(finished)
