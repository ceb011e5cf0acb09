"""
Audit logging helpers and enums.

Operations write one normalized audit document when they start and one when
they reach a terminal status.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional

from batchops.db.store import AUDIT_LOGS, Store
from batchops.schemas import OperationRecord, OperationStatus

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    OPERATION_START = "operation_start"
    OPERATION_COMPLETE = "operation_complete"
    OPERATION_FAILED = "operation_failed"
    OPERATION_CANCELLED = "operation_cancelled"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


_TERMINAL_ACTIONS = {
    OperationStatus.COMPLETED: AuditAction.OPERATION_COMPLETE,
    OperationStatus.FAILED: AuditAction.OPERATION_FAILED,
    OperationStatus.CANCELLED: AuditAction.OPERATION_CANCELLED,
}


async def log(
    store: Store,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Central audit logging helper."""
    # Persist plain string values, not Enum reprs
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    return await store.create(
        AUDIT_LOGS,
        {
            "action_type": action_value,
            "status": status_value,
            "target_type": target_type,
            "target_id": target_id,
            "metadata": metadata or {},
        },
    )


async def log_batch_operation(store: Store, record: OperationRecord) -> Optional[Dict[str, Any]]:
    """Audit the record's current phase; returns None if the write failed."""
    if record.is_terminal:
        action = _TERMINAL_ACTIONS[record.status]
        status = AuditStatus.SUCCESS if record.status == OperationStatus.COMPLETED else AuditStatus.FAILURE
    else:
        action = AuditAction.OPERATION_START
        status = AuditStatus.SUCCESS
    metadata = {
        "operation_type": record.type.value,
        "title": record.title,
        "total_items": record.total_items,
        "success_items": record.success_items,
        "failed_items": record.failed_items,
    }
    try:
        return await log(
            store,
            action=action,
            status=status,
            target_type="batch_operation",
            target_id=record.id,
            metadata=metadata,
        )
    except Exception as e:
        logger.warning(f"Failed to write audit log for operation {record.id}: {e}")
        return None


__all__ = ["AuditAction", "AuditStatus", "log", "log_batch_operation"]
