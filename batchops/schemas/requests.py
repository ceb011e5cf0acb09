"""
Request payloads accepted by the batch executors.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


ConditionOperator = Literal["equals", "not_equals", "greater_than", "less_than", "contains"]


class Condition(BaseModel):
    field: str
    operator: ConditionOperator
    value: Any = None


class TargetFilter(BaseModel):
    """Declarative description of who or what an operation targets.

    ``group_ids`` are workshop ids, ``ids`` are user ids and ``criteria`` is the
    condition list evaluated for the ``custom`` kind.
    """

    type: Literal["all", "groups", "ids", "custom"]
    group_ids: List[str] = Field(default_factory=list)
    ids: List[str] = Field(default_factory=list)
    criteria: List[Condition] = Field(default_factory=list)


class Recipient(BaseModel):
    id: str
    email: str
    name: str = ""
    group_id: Optional[str] = None
    group_title: Optional[str] = None


# === Bulk create ===

class BulkCreateItem(BaseModel):
    title: Optional[str] = None
    instructor: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    max_participants: Optional[int] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)

    def overrides(self) -> Dict[str, Any]:
        """Fields set on this item, custom fields last so they win."""
        values = self.model_dump(exclude={"custom_fields"}, exclude_none=True)
        values.update(self.custom_fields)
        return values


class BulkCreateRequest(BaseModel):
    template_id: str
    items: List[BulkCreateItem]
    create_tasks: bool = False
    notify_owners: bool = False


# === Mass message ===

class MassMessageRequest(BaseModel):
    recipients: TargetFilter
    subject: str
    content: str
    content_type: Literal["html", "text"] = "html"
    test_mode: bool = False


# === Batch update ===

class BatchUpdateRequest(BaseModel):
    ids: List[str]
    updates: Dict[str, Any]
    conditions: List[Condition] = Field(default_factory=list)
    notify_participants: bool = False
    notify_owners: bool = False


# === Bulk cancel / reschedule ===

class RescheduleData(BaseModel):
    new_start_time: Optional[str] = None
    new_end_time: Optional[str] = None
    new_owner: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        mapping = {
            "start_time": self.new_start_time,
            "end_time": self.new_end_time,
            "instructor": self.new_owner,
        }
        return {key: value for key, value in mapping.items() if value}


class BulkCancelRescheduleRequest(BaseModel):
    ids: List[str]
    action: Literal["cancel", "reschedule"]
    reschedule: Optional[RescheduleData] = None
    notify_participants: bool = False
    reason: Optional[str] = None


# === Export ===

class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    EXCEL = "excel"


class ExportField(BaseModel):
    key: str
    label: str


DEFAULT_EXPORT_FIELDS: List[ExportField] = [
    ExportField(key="name", label="Name"),
    ExportField(key="email", label="Email"),
    ExportField(key="faculty", label="Faculty"),
    ExportField(key="department", label="Department"),
    ExportField(key="workshop_title", label="Workshop"),
    ExportField(key="registration_date", label="Registration Date"),
]


class DateRange(BaseModel):
    start: datetime
    end: datetime


class ExportRequest(BaseModel):
    format: ExportFormat = ExportFormat.CSV
    scope: Literal["all", "groups", "date_range"] = "all"
    group_ids: List[str] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    fields: List[ExportField] = Field(default_factory=lambda: list(DEFAULT_EXPORT_FIELDS))
    anonymize: bool = False


class ExportArtifact(BaseModel):
    filename: str
    download_url: str
    format: ExportFormat
    content_type: str
    size: int
    record_count: int
    generated_at: datetime


# === Import ===

class ColumnMapping(BaseModel):
    source_column: str
    target_field: str
    required: bool = False
    default_value: Any = None


DEFAULT_IMPORT_MAPPINGS: List[ColumnMapping] = [
    ColumnMapping(source_column="title", target_field="title", required=True),
    ColumnMapping(source_column="description", target_field="description"),
    ColumnMapping(source_column="instructor", target_field="instructor", required=True),
    ColumnMapping(source_column="start_time", target_field="start_time", required=True),
    ColumnMapping(source_column="end_time", target_field="end_time", required=True),
    ColumnMapping(source_column="max_participants", target_field="max_participants", default_value=30),
]


class ImportRequest(BaseModel):
    filename: str
    content: Union[bytes, str]
    format: Literal["csv", "excel"] = "csv"
    mappings: List[ColumnMapping] = Field(default_factory=lambda: list(DEFAULT_IMPORT_MAPPINGS))
    validate_only: bool = False


class ImportIssue(BaseModel):
    row: int
    column: str
    value: Any = None
    message: str
    suggestion: Optional[str] = None


class PreviewRow(BaseModel):
    row_number: int
    data: Dict[str, Any]
    has_errors: bool = False
    has_warnings: bool = False


class ImportValidationReport(BaseModel):
    is_valid: bool
    total_rows: int
    valid_rows: int = 0
    invalid_rows: int = 0
    errors: List[ImportIssue] = Field(default_factory=list)
    warnings: List[ImportIssue] = Field(default_factory=list)
    preview: List[PreviewRow] = Field(default_factory=list)
