"""
Exception types raised inside the batch operations engine.

Executors convert these into operation state; callers only ever see them when
they use the store or catalog helpers directly.
"""


class BatchOperationsError(Exception):
    """Base class for engine errors."""


class OperationSetupError(BatchOperationsError):
    """Fatal failure before or outside item processing (missing template, malformed request, limits)."""


class OperationCancelled(BatchOperationsError):
    """Raised at a cancellation checkpoint once cancellation was requested."""

    def __init__(self, operation_id: str):
        super().__init__(f"Operation {operation_id} was cancelled")
        self.operation_id = operation_id


class RecordNotFoundError(BatchOperationsError):
    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection} record not found: {record_id}")
        self.collection = collection
        self.record_id = record_id
