"""
Operation record, ledger entry and result schemas.

Records are frozen; every mutation goes through the registry, which swaps in a
new copy so readers never see a partially written record.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field


class OperationType(str, Enum):
    BULK_CREATE = "bulk_create"
    MASS_MESSAGE = "mass_message"
    BATCH_UPDATE = "batch_update"
    BULK_CANCEL_RESCHEDULE = "bulk_cancel_reschedule"
    EXPORT = "export"
    IMPORT = "import"


class OperationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {OperationStatus.COMPLETED, OperationStatus.FAILED, OperationStatus.CANCELLED}
)


class ErrorSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class LedgerEntry(BaseModel):
    """One per-item failure or warning attached to an operation."""

    model_config = ConfigDict(frozen=True)

    id: str
    message: str
    details: Optional[str] = None
    item_id: Optional[str] = None
    timestamp: datetime
    severity: ErrorSeverity = ErrorSeverity.ERROR

    @computed_field  # type: ignore[prop-decorator]
    @property
    def retryable(self) -> bool:
        return self.severity == ErrorSeverity.WARNING


class OperationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: OperationType
    status: OperationStatus = OperationStatus.PENDING
    title: str
    description: Optional[str] = None
    progress: int = 0
    total_items: int = 0
    processed_items: int = 0
    success_items: int = 0
    failed_items: int = 0
    errors: Tuple[LedgerEntry, ...] = ()
    can_cancel: bool = True
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def warning_count(self) -> int:
        return sum(1 for entry in self.errors if entry.severity == ErrorSeverity.WARNING)


class OperationSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    warnings: int = 0


class OperationResult(BaseModel):
    """What every executor hands back to its caller."""

    success: bool
    operation: OperationRecord
    data: Any = None
    summary: OperationSummary = Field(default_factory=OperationSummary)
