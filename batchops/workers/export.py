"""Participant data export."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from batchops.codecs import CONTENT_TYPES, FILE_EXTENSIONS, encode_rows, get_nested_value
from batchops.errors import OperationSetupError
from batchops.schemas import ExportArtifact, ExportRequest, OperationStatus, OperationType
from batchops.utils.anonymize import anonymize_value
from batchops.utils.due_dates import parse_timestamp
from batchops.workers.base import BatchWorker, OperationTracker

logger = logging.getLogger(__name__)

# Export field key -> path into a joined participant row
FIELD_PATHS: Dict[str, str] = {
    "name": "user.name",
    "email": "user.email",
    "faculty": "user.faculty",
    "department": "user.department",
    "workshop_title": "workshop.title",
    "registration_date": "registered_at",
}


def extract_field_value(row: Dict[str, Any], key: str) -> Any:
    """Look up a field by its export key; unknown keys are read as dotted paths."""
    value = get_nested_value(row, FIELD_PATHS.get(key, key))
    if key == "registration_date" and value:
        parsed = parse_timestamp(value)
        value = parsed.date().isoformat() if parsed else value
    return "" if value is None else value


def format_row(row: Dict[str, Any], request: ExportRequest) -> Dict[str, Any]:
    formatted = {}
    for field in request.fields:
        value = extract_field_value(row, field.key)
        if request.anonymize:
            value = anonymize_value(value, field.key)
        formatted[field.label] = value
    return formatted


def export_filename(request: ExportRequest, generated_at: datetime) -> str:
    timestamp = generated_at.isoformat().replace(":", "-").replace(".", "-").replace("+", "-")
    return f"participant-export-{timestamp}.{FILE_EXTENSIONS[request.format]}"


class ExportWorker(BatchWorker):
    operation_type = OperationType.EXPORT
    failure_label = "Export operation"

    def describe(self, request: ExportRequest):
        return "Export Participant Data", f"Exporting participant data as {request.format.value}", 0

    async def _gather(self, request: ExportRequest) -> List[Dict[str, Any]]:
        resolver = self.context.resolver
        if request.scope == "groups":
            return await resolver.participants(request.group_ids)
        rows = await resolver.participants()
        if request.scope == "date_range":
            start = parse_timestamp(request.date_range.start)
            end = parse_timestamp(request.date_range.end)
            within = []
            for row in rows:
                registered = parse_timestamp(row.get("registered_at"))
                if registered is not None and start <= registered <= end:
                    within.append(row)
            rows = within
        return rows

    async def process(self, tracker: OperationTracker, request: ExportRequest) -> None:
        if request.scope == "groups" and not request.group_ids:
            raise OperationSetupError("Group scope requires at least one group id")
        if request.scope == "date_range" and request.date_range is None:
            raise OperationSetupError("Date range scope requires a date range")
        if not request.fields:
            raise OperationSetupError("No export fields declared")

        rows = await self._gather(request)
        tracker.set_total(len(rows))

        for index, row in enumerate(rows, start=1):
            tracker.checkpoint()
            try:
                formatted = format_row(row, request)
            except Exception as e:
                tracker.item_failed(f"Failed to format row {index}: {e}", item_id=f"row_{index}")
            else:
                tracker.item_succeeded(formatted)

        generated_at = datetime.now(timezone.utc)
        headers = [field.label for field in request.fields]
        content = encode_rows(tracker.output, headers, request.format)
        filename = export_filename(request, generated_at)
        download_url = self.context.artifacts.put(filename, content)
        logger.info(f"Generated export {filename} with {len(tracker.output)} rows")

        tracker.payload = ExportArtifact(
            filename=filename,
            download_url=download_url,
            format=request.format,
            content_type=CONTENT_TYPES[request.format],
            size=len(content),
            record_count=len(tracker.output),
            generated_at=generated_at,
        )

    def is_successful(self, record, tracker, request) -> bool:
        return record.status == OperationStatus.COMPLETED

    def result_data(self, record, tracker, request):
        return tracker.payload
