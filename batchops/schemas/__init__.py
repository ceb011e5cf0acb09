"""
Pydantic schemas for operation records and executor requests.

Re-exports the names from the domain-split modules.
"""

from .operations import (
    OperationType,
    OperationStatus,
    TERMINAL_STATUSES,
    ErrorSeverity,
    LedgerEntry,
    OperationRecord,
    OperationSummary,
    OperationResult,
)
from .requests import (
    Condition,
    TargetFilter,
    Recipient,
    BulkCreateItem,
    BulkCreateRequest,
    MassMessageRequest,
    BatchUpdateRequest,
    RescheduleData,
    BulkCancelRescheduleRequest,
    ExportFormat,
    ExportField,
    DEFAULT_EXPORT_FIELDS,
    DateRange,
    ExportRequest,
    ExportArtifact,
    ColumnMapping,
    DEFAULT_IMPORT_MAPPINGS,
    ImportRequest,
    ImportIssue,
    PreviewRow,
    ImportValidationReport,
)

__all__ = [
    # operations
    "OperationType",
    "OperationStatus",
    "TERMINAL_STATUSES",
    "ErrorSeverity",
    "LedgerEntry",
    "OperationRecord",
    "OperationSummary",
    "OperationResult",
    # requests
    "Condition",
    "TargetFilter",
    "Recipient",
    "BulkCreateItem",
    "BulkCreateRequest",
    "MassMessageRequest",
    "BatchUpdateRequest",
    "RescheduleData",
    "BulkCancelRescheduleRequest",
    "ExportFormat",
    "ExportField",
    "DEFAULT_EXPORT_FIELDS",
    "DateRange",
    "ExportRequest",
    "ExportArtifact",
    "ColumnMapping",
    "DEFAULT_IMPORT_MAPPINGS",
    "ImportRequest",
    "ImportIssue",
    "PreviewRow",
    "ImportValidationReport",
]
