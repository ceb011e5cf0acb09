"""In-process orchestration of long-running batch operations over workshops and participants."""

from .errors import BatchOperationsError, OperationCancelled, OperationSetupError, RecordNotFoundError
from .registry import OperationRegistry, ProgressPublisher
from .service import BatchOperationsService

__all__ = [
    "BatchOperationsService",
    "OperationRegistry",
    "ProgressPublisher",
    "BatchOperationsError",
    "OperationCancelled",
    "OperationSetupError",
    "RecordNotFoundError",
]

__version__ = "0.1.0"
