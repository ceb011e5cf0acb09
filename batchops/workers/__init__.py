"""Batch executors, one per operation type."""

from .base import BatchWorker, OperationTracker, WorkerContext
from .batch_update import BatchUpdateWorker
from .bulk_create import BulkCreateWorker
from .cancel_reschedule import CancelRescheduleWorker
from .data_import import ImportWorker
from .export import ExportWorker
from .mass_message import MassMessageWorker

WORKERS = {
    BulkCreateWorker.operation_type: BulkCreateWorker,
    MassMessageWorker.operation_type: MassMessageWorker,
    BatchUpdateWorker.operation_type: BatchUpdateWorker,
    CancelRescheduleWorker.operation_type: CancelRescheduleWorker,
    ExportWorker.operation_type: ExportWorker,
    ImportWorker.operation_type: ImportWorker,
}

__all__ = [
    "BatchWorker",
    "OperationTracker",
    "WorkerContext",
    "BatchUpdateWorker",
    "BulkCreateWorker",
    "CancelRescheduleWorker",
    "ImportWorker",
    "ExportWorker",
    "MassMessageWorker",
    "WORKERS",
]
