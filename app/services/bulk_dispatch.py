"""
Bulk Dispatch Coordinator

Validates a batch of outbound messages and fans it out into the job queue.
Returns job handles as soon as everything is enqueued; delivery happens
later in the worker pool.
"""
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from app.errors import ValidationError
from app.routes.metrics import track_job_queued
from app.schemas.messages import BulkMessageItem, validation_details
from app.services.job_queue import JobQueue

logger = structlog.get_logger()


class BulkDispatchCoordinator:
    """Turns batch submissions into send jobs."""

    def __init__(
        self,
        queue: JobQueue,
        max_batch_size: int = 100,
        delay_ceiling_ms: int = 60000
    ):
        self.queue = queue
        self.max_batch_size = max_batch_size
        self.delay_ceiling_ms = delay_ceiling_ms

    def validate_batch(self, items: list[dict[str, Any] | BulkMessageItem]) -> list[BulkMessageItem]:
        """
        Validate every item before anything is enqueued.

        Raises:
            ValidationError: Batch size out of range or any invalid item
        """
        if not items:
            raise ValidationError(
                "At least one message is required",
                details=[{"field": "messages", "message": "At least one message is required"}]
            )
        if len(items) > self.max_batch_size:
            raise ValidationError(
                f"Maximum {self.max_batch_size} messages per request",
                details=[{"field": "messages", "message": f"got {len(items)} messages"}]
            )

        parsed = []
        details = []
        for index, item in enumerate(items):
            try:
                message = item if isinstance(item, BulkMessageItem) else BulkMessageItem.model_validate(item)
            except PydanticValidationError as e:
                details.extend(validation_details(e, prefix=f"messages.{index}."))
                continue
            if message.delay > self.delay_ceiling_ms:
                details.append({
                    "field": f"messages.{index}.delay",
                    "message": f"Delay cannot exceed {self.delay_ceiling_ms} ms",
                })
                continue
            parsed.append(message)

        if details:
            raise ValidationError("Request validation failed", details=details)
        return parsed

    async def submit_batch(self, items: list[dict[str, Any] | BulkMessageItem]) -> list[dict[str, str]]:
        """
        Enqueue one send job per item.

        Returns:
            [{"target": ..., "jobId": ...}] in submission order
        """
        messages = self.validate_batch(items)

        handles = []
        for message in messages:
            job_id = await self.queue.submit(
                target=message.chat_id,
                body={"message": message.message, "options": message.options},
                delay_ms=message.delay,
                priority=message.priority
            )
            track_job_queued()
            handles.append({"target": message.chat_id, "jobId": job_id})

        logger.info("batch_enqueued", size=len(handles))
        return handles
