"""Conditional batch update of workshops."""

import logging

from batchops.db.store import WORKSHOPS
from batchops.errors import OperationSetupError, RecordNotFoundError
from batchops.schemas import BatchUpdateRequest, OperationType
from batchops.utils.conditions import conditions_met
from batchops.workers.base import BatchWorker, OperationTracker

logger = logging.getLogger(__name__)


class BatchUpdateWorker(BatchWorker):
    operation_type = OperationType.BATCH_UPDATE
    failure_label = "Batch update operation"

    def describe(self, request: BatchUpdateRequest):
        count = len(request.ids)
        return "Batch Update Workshops", f"Updating {count} workshops", count

    async def process(self, tracker: OperationTracker, request: BatchUpdateRequest) -> None:
        if not request.updates:
            raise OperationSetupError("No updates supplied")
        self.ensure_item_limit(len(request.ids))
        tracker.set_total(len(request.ids))

        chunk_size = self.limits.update_chunk_size
        for start in range(0, len(request.ids), chunk_size):
            for workshop_id in request.ids[start:start + chunk_size]:
                tracker.checkpoint()
                try:
                    if request.conditions:
                        workshop = await self.store.get(WORKSHOPS, workshop_id)
                        if workshop is None:
                            raise RecordNotFoundError(WORKSHOPS, workshop_id)
                        if not conditions_met(workshop, request.conditions):
                            tracker.item_skipped(
                                f"Conditions not met for workshop: {workshop.get('title') or workshop_id}",
                                item_id=workshop_id,
                            )
                            continue
                    updated = await self.store.update(WORKSHOPS, workshop_id, request.updates)
                except Exception as e:
                    tracker.item_failed(f"Failed to update workshop {workshop_id}: {e}", item_id=workshop_id)
                else:
                    tracker.item_succeeded(updated)

    async def finalize(self, tracker: OperationTracker, request: BatchUpdateRequest) -> None:
        if not (request.notify_participants or request.notify_owners):
            return
        notifier = self.context.notifier
        for workshop in tracker.output:
            try:
                if request.notify_participants:
                    await notifier.send_workshop_update(workshop["id"])
                if request.notify_owners and workshop.get("instructor"):
                    await notifier.notify_owner_of_changes(workshop["instructor"], [workshop])
            except Exception as e:
                logger.warning(f"Failed to send batch update notification for workshop {workshop.get('id')}: {e}")
