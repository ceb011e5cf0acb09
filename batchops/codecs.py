"""Tabular codecs for export and import, plus the in-process export artifact cache."""

from __future__ import annotations

import csv
import io
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union

from openpyxl import Workbook, load_workbook

from batchops.schemas import ExportFormat

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {
    ExportFormat.CSV: "csv",
    ExportFormat.JSON: "json",
    ExportFormat.EXCEL: "xlsx",
}

CONTENT_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def get_nested_value(obj: Any, path: str) -> Any:
    """Get a nested value using dot notation, e.g. ``user.email``.

    Returns None when any segment along the path is missing.
    """
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
        elif hasattr(current, part):
            current = getattr(current, part)
        else:
            return None
    return current


def _cell_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


def to_csv(rows: Sequence[Dict[str, Any]], headers: Sequence[str]) -> bytes:
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=list(headers), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({key: _cell_value(value) for key, value in row.items()})
    return buffer.getvalue().encode("utf-8")


def to_json(rows: Sequence[Dict[str, Any]]) -> bytes:
    return json.dumps(list(rows), indent=2, default=str).encode("utf-8")


def to_xlsx(rows: Sequence[Dict[str, Any]], headers: Sequence[str], sheet_title: str = "Export") -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    sheet.append(list(headers))
    for row in rows:
        sheet.append([_cell_value(row.get(header)) for header in headers])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def encode_rows(rows: Sequence[Dict[str, Any]], headers: Sequence[str], export_format: ExportFormat) -> bytes:
    if export_format == ExportFormat.CSV:
        return to_csv(rows, headers)
    if export_format == ExportFormat.JSON:
        return to_json(rows)
    if export_format == ExportFormat.EXCEL:
        return to_xlsx(rows, headers)
    raise ValueError(f"Unsupported export format: {export_format}")


def _as_text(content: Union[bytes, str]) -> str:
    if isinstance(content, bytes):
        # utf-8-sig drops a spreadsheet-exported BOM
        return content.decode("utf-8-sig")
    return content


def from_csv(content: Union[bytes, str]) -> List[Dict[str, str]]:
    reader = csv.reader(io.StringIO(_as_text(content), newline=""))
    rows = [row for row in reader]
    if not rows:
        return []
    headers = [header.strip() for header in rows[0]]
    records = []
    for row in rows[1:]:
        if not any(cell.strip() for cell in row):
            continue
        records.append({header: (row[index].strip() if index < len(row) else "") for index, header in enumerate(headers)})
    return records


def from_xlsx(content: Union[bytes, str], sheet_name: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(content, str):
        raise ValueError("Excel content must be bytes")
    workbook = load_workbook(io.BytesIO(content), data_only=True)
    if sheet_name is not None and sheet_name not in workbook.sheetnames:
        raise ValueError(f"Sheet not found: {sheet_name}")
    sheet = workbook[sheet_name] if sheet_name else workbook.worksheets[0]

    rows = [list(row) for row in sheet.iter_rows(values_only=True)]
    if not rows:
        return []
    headers = [str(header).strip() if header is not None else "" for header in rows[0]]
    records = []
    for row in rows[1:]:
        if all(value is None or value == "" for value in row):
            continue
        record = {}
        for index, header in enumerate(headers):
            value = row[index] if index < len(row) else None
            record[header] = value.strip() if isinstance(value, str) else ("" if value is None else value)
        records.append(record)
    return records


def decode_rows(content: Union[bytes, str], file_format: str) -> List[Dict[str, Any]]:
    """Parse an uploaded table into one dict per data row, keyed by header."""
    if file_format == "csv":
        return from_csv(content)
    if file_format == "excel":
        return from_xlsx(content)
    raise ValueError(f"Unsupported import format: {file_format}")


class ArtifactCache:
    """Ephemeral in-process storage for generated export files.

    URLs handed out here are only meaningful inside the current process.
    """

    scheme = "memory://exports/"

    def __init__(self):
        self._artifacts: Dict[str, bytes] = {}

    def put(self, filename: str, content: bytes) -> str:
        url = f"{self.scheme}{uuid.uuid4().hex}/{filename}"
        self._artifacts[url] = content
        logger.debug(f"Cached export artifact {filename} ({len(content)} bytes)")
        return url

    def fetch(self, url: str) -> Optional[bytes]:
        return self._artifacts.get(url)

    def discard(self, url: str) -> bool:
        return self._artifacts.pop(url, None) is not None

    def __len__(self) -> int:
        return len(self._artifacts)
