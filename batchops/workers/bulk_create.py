"""Bulk workshop creation from a template."""

import logging
from collections import OrderedDict
from typing import Any, Dict, List

from batchops.db.store import TASKS, WORKSHOPS
from batchops.errors import OperationSetupError
from batchops.schemas import BulkCreateItem, BulkCreateRequest, OperationType
from batchops.templates import WorkshopTemplate
from batchops.utils.due_dates import calculate_due_date
from batchops.workers.base import BatchWorker, OperationTracker

logger = logging.getLogger(__name__)


def merge_workshop_fields(template: WorkshopTemplate, item: BulkCreateItem, index: int) -> Dict[str, Any]:
    """Template defaults overlaid with the item's own fields; the item wins."""
    fields = {**template.defaults, **item.overrides()}
    fields["title"] = fields.get("title") or f"Workshop {index + 1}"
    fields["instructor"] = fields.get("instructor") or ""
    fields["template_id"] = template.id
    fields.setdefault("is_active", True)
    return fields


class BulkCreateWorker(BatchWorker):
    operation_type = OperationType.BULK_CREATE
    failure_label = "Bulk create operation"

    def describe(self, request: BulkCreateRequest):
        count = len(request.items)
        return "Bulk Create Workshops", f"Creating {count} workshops from template", count

    async def process(self, tracker: OperationTracker, request: BulkCreateRequest) -> None:
        template = self.context.templates.get(request.template_id)
        if template is None:
            raise OperationSetupError(f"Template not found: {request.template_id}")
        self.ensure_item_limit(len(request.items))
        tracker.set_total(len(request.items))

        chunk_size = self.limits.create_chunk_size
        for start in range(0, len(request.items), chunk_size):
            for index, item in enumerate(request.items[start:start + chunk_size], start=start):
                tracker.checkpoint()
                try:
                    workshop = await self.store.create(WORKSHOPS, merge_workshop_fields(template, item, index))
                except Exception as e:
                    tracker.item_failed(f"Failed to create workshop {index + 1}: {e}", item_id=f"workshop_{index}")
                    continue

                # the workshop is committed, so task problems only warn
                if request.create_tasks and template.task_templates:
                    await self._create_tasks(tracker, template, workshop, index)
                tracker.item_succeeded(workshop)

    async def _create_tasks(
        self, tracker: OperationTracker, template: WorkshopTemplate, workshop: Dict[str, Any], index: int
    ) -> None:
        for task_template in template.task_templates:
            try:
                due_date = calculate_due_date(workshop.get("start_time"), task_template.due_date)
                await self.store.create(
                    TASKS,
                    {
                        "workshop_id": workshop["id"],
                        "title": task_template.title,
                        "description": task_template.description,
                        "due_date": due_date.isoformat() if due_date else None,
                        "order_index": task_template.order_index,
                    },
                )
            except Exception as e:
                tracker.warn(
                    f"Failed to create task '{task_template.title}' for workshop {index + 1}: {e}",
                    item_id=f"workshop_{index}",
                )

    async def finalize(self, tracker: OperationTracker, request: BulkCreateRequest) -> None:
        if not request.notify_owners or not tracker.output:
            return

        by_owner: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
        for workshop in tracker.output:
            by_owner.setdefault(workshop.get("instructor") or "", []).append(workshop)

        for owner_id, workshops in by_owner.items():
            try:
                outcome = await self.context.notifier.notify_owner_of_new_items(owner_id, workshops)
            except Exception as e:
                logger.warning(f"Failed to notify owner {owner_id!r}: {e}")
                tracker.warn(f"Failed to notify owner {owner_id}: {e}", item_id=owner_id or None)
                continue
            if outcome.get("failed"):
                tracker.warn(f"Owner notification not delivered to {owner_id}", item_id=owner_id or None)
