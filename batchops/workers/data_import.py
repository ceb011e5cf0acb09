"""
Workshop import from an uploaded CSV or Excel table.

The first rows are validated against the column mappings and summarised in an
ImportValidationReport. Unless only validation was requested, every row is
then mapped to workshop fields and created one at a time.
"""
import json
import logging
from typing import Any, Dict, List, Sequence

from batchops.codecs import decode_rows
from batchops.db.store import WORKSHOPS
from batchops.errors import OperationSetupError
from batchops.schemas import (
    ColumnMapping,
    ImportIssue,
    ImportRequest,
    ImportValidationReport,
    OperationStatus,
    OperationSummary,
    OperationType,
    PreviewRow,
)
from batchops.workers.base import BatchWorker, OperationTracker

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = frozenset({"max_participants"})


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value))
    except ValueError:
        return False
    return True


def _coerce_number(value: Any) -> Any:
    if isinstance(value, str) and _is_number(value):
        number = float(value)
        return int(number) if number.is_integer() else number
    return value


def validate_rows(
    rows: Sequence[Dict[str, Any]], mappings: Sequence[ColumnMapping], preview_limit: int
) -> ImportValidationReport:
    """Validate the first ``preview_limit`` rows; row numbers are 1-based."""
    errors: List[ImportIssue] = []
    warnings: List[ImportIssue] = []
    preview: List[PreviewRow] = []
    valid_rows = 0
    invalid_rows = 0

    for row_number, row in enumerate(rows[:preview_limit], start=1):
        has_errors = False
        has_warnings = False

        for mapping in mappings:
            value = row.get(mapping.source_column)
            if mapping.required and _is_blank(value):
                errors.append(ImportIssue(
                    row=row_number,
                    column=mapping.source_column,
                    value=value,
                    message="Required field is empty",
                ))
                has_errors = True
            elif mapping.target_field in NUMERIC_FIELDS and not _is_blank(value) and not _is_number(value):
                warnings.append(ImportIssue(
                    row=row_number,
                    column=mapping.source_column,
                    value=value,
                    message="Invalid number format",
                    suggestion="Use numeric value",
                ))
                has_warnings = True

        if has_errors:
            invalid_rows += 1
        else:
            valid_rows += 1
        preview.append(PreviewRow(row_number=row_number, data=dict(row), has_errors=has_errors, has_warnings=has_warnings))

    return ImportValidationReport(
        is_valid=not errors,
        total_rows=len(rows),
        valid_rows=valid_rows,
        invalid_rows=invalid_rows,
        errors=errors,
        warnings=warnings,
        preview=preview,
    )


def map_row(row: Dict[str, Any], mappings: Sequence[ColumnMapping]) -> Dict[str, Any]:
    """Source columns to target fields; blank values fall back to the mapping default."""
    data: Dict[str, Any] = {}
    for mapping in mappings:
        value = row.get(mapping.source_column)
        if _is_blank(value):
            value = mapping.default_value
        if value is None:
            continue
        data[mapping.target_field] = _coerce_number(value) if mapping.target_field in NUMERIC_FIELDS else value
    return data


class ImportWorker(BatchWorker):
    operation_type = OperationType.IMPORT
    failure_label = "Import operation"

    def describe(self, request: ImportRequest):
        return "Import Workshop Data", f"Importing workshops from {request.filename}", 0

    async def process(self, tracker: OperationTracker, request: ImportRequest) -> None:
        content = request.content
        size = len(content.encode("utf-8")) if isinstance(content, str) else len(content)
        if size > self.limits.max_file_size_bytes:
            raise OperationSetupError(f"File too large. Maximum size: {self.limits.max_file_size_mb}MB")

        try:
            rows = decode_rows(content, request.format)
        except Exception as e:
            raise OperationSetupError(f"Could not parse {request.filename}: {e}") from e
        self.ensure_item_limit(len(rows))
        tracker.set_total(len(rows))

        report = validate_rows(rows, request.mappings, self.limits.import_preview_rows)
        for issue in report.warnings:
            tracker.warn(
                f"Row {issue.row}: {issue.message} in column '{issue.column}'",
                item_id=f"row_{issue.row}",
                details=issue.suggestion,
            )
        tracker.payload = report

        if request.validate_only:
            return
        if not report.is_valid:
            raise OperationSetupError(f"Validation failed: {len(report.errors)} errors found")
        tracker.payload = None

        for row_number, row in enumerate(rows, start=1):
            tracker.checkpoint()
            try:
                workshop = await self.store.create(WORKSHOPS, map_row(row, request.mappings))
            except Exception as e:
                tracker.item_failed(
                    f"Failed to import row {row_number}: {e}",
                    item_id=f"row_{row_number}",
                    details=json.dumps(row, default=str),
                )
            else:
                tracker.item_succeeded(workshop)

    def is_successful(self, record, tracker, request: ImportRequest) -> bool:
        if record.status != OperationStatus.COMPLETED:
            return False
        if request.validate_only:
            return isinstance(tracker.payload, ImportValidationReport) and tracker.payload.is_valid
        return True

    def summarize(self, record, tracker, request: ImportRequest) -> OperationSummary:
        report = tracker.payload
        if request.validate_only and isinstance(report, ImportValidationReport):
            return OperationSummary(
                total=report.total_rows,
                successful=report.valid_rows,
                failed=report.invalid_rows,
                warnings=len(report.warnings),
            )
        return super().summarize(record, tracker, request)
