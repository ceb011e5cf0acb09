"""Mass messaging to resolved participants."""

import logging

from batchops.errors import OperationSetupError
from batchops.schemas import MassMessageRequest, OperationType
from batchops.services.email_service import html_to_text
from batchops.workers.base import BatchWorker, OperationTracker

logger = logging.getLogger(__name__)


class MassMessageWorker(BatchWorker):
    """Sends one message to every resolved recipient, one gateway batch per chunk.

    Progress and cancellation checkpoints happen per chunk rather than per
    recipient. The recipient ceiling is enforced before anything is sent.
    """

    operation_type = OperationType.MASS_MESSAGE
    failure_label = "Mass message operation"

    def describe(self, request: MassMessageRequest):
        return "Mass Message Participants", "Sending messages to participants", 0

    async def process(self, tracker: OperationTracker, request: MassMessageRequest) -> None:
        recipients = await self.context.resolver.resolve(request.recipients)

        maximum = self.limits.max_email_recipients
        if len(recipients) > maximum:
            raise OperationSetupError(f"Too many recipients. Maximum allowed: {maximum}")
        if not recipients:
            raise OperationSetupError("No recipients matched the requested filter")
        tracker.set_total(len(recipients))

        if request.content_type == "html":
            html_content, text_content = request.content, html_to_text(request.content)
        else:
            html_content, text_content = None, request.content

        chunk_size = self.limits.message_chunk_size
        for batch_number, start in enumerate(range(0, len(recipients), chunk_size), start=1):
            tracker.checkpoint()
            chunk = recipients[start:start + chunk_size]

            if request.test_mode:
                logger.info(f"Test mode: would send message to {len(chunk)} recipients")
                tracker.items_succeeded(len(chunk))
                continue

            try:
                delivered = await self.context.gateway.send_batch(chunk, request.subject, html_content, text_content)
            except Exception as e:
                tracker.items_failed(
                    len(chunk),
                    f"Failed to send message batch {batch_number}: {e}",
                    item_id=f"batch_{batch_number}",
                    details=f"Recipients: {', '.join(r.email for r in chunk)}",
                )
                continue

            if delivered:
                tracker.items_succeeded(len(chunk))
            else:
                tracker.items_failed(
                    len(chunk),
                    f"Failed to send message batch {batch_number}",
                    item_id=f"batch_{batch_number}",
                    details=f"Batch size: {len(chunk)}",
                )

    def result_data(self, record, tracker, request: MassMessageRequest):
        return {"sent": tracker.succeeded, "failed": tracker.failed, "test_mode": request.test_mode}
