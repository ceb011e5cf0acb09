"""Bulk cancellation or rescheduling of workshops."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from batchops.db.store import WORKSHOPS
from batchops.errors import OperationSetupError
from batchops.schemas import BulkCancelRescheduleRequest, OperationType
from batchops.workers.base import BatchWorker, OperationTracker

logger = logging.getLogger(__name__)


class CancelRescheduleWorker(BatchWorker):
    operation_type = OperationType.BULK_CANCEL_RESCHEDULE
    failure_label = "Bulk cancel/reschedule operation"

    def describe(self, request: BulkCancelRescheduleRequest):
        count = len(request.ids)
        if request.action == "cancel":
            return "Bulk Cancel Workshops", f"Cancelling {count} workshops", count
        return "Bulk Reschedule Workshops", f"Rescheduling {count} workshops", count

    def _changes(self, request: BulkCancelRescheduleRequest) -> Dict[str, Any]:
        if request.action == "reschedule":
            return request.reschedule.changes() if request.reschedule else {}
        changes: Dict[str, Any] = {
            "status": "cancelled",
            "is_active": False,
            "cancelled_at": datetime.now(timezone.utc).isoformat(),
        }
        if request.reason:
            changes["cancellation_reason"] = request.reason
        return changes

    async def process(self, tracker: OperationTracker, request: BulkCancelRescheduleRequest) -> None:
        if request.action == "reschedule" and not self._changes(request):
            raise OperationSetupError("Reschedule requires a new start time, end time or owner")
        self.ensure_item_limit(len(request.ids))
        tracker.set_total(len(request.ids))

        chunk_size = self.limits.update_chunk_size
        for start in range(0, len(request.ids), chunk_size):
            for workshop_id in request.ids[start:start + chunk_size]:
                tracker.checkpoint()
                try:
                    workshop = await self.store.update(WORKSHOPS, workshop_id, self._changes(request))
                except Exception as e:
                    tracker.item_failed(f"Failed to {request.action} workshop {workshop_id}: {e}", item_id=workshop_id)
                    continue

                if request.notify_participants:
                    await self._notify(workshop_id, request.action)
                tracker.item_succeeded(workshop)

    async def _notify(self, workshop_id: str, action: str) -> None:
        notifier = self.context.notifier
        try:
            if action == "cancel":
                await notifier.send_workshop_cancellation(workshop_id)
            else:
                await notifier.send_workshop_update(workshop_id)
        except Exception as e:
            logger.warning(f"Failed to notify participants of workshop {workshop_id}: {e}")
