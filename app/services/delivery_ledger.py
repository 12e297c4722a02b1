"""
Delivery Ledger

Owns DeliveryRecord storage. Records live in memory while in flight and
every state transition is written through to the record store before the
dispatcher takes its next action.
"""
import copy
import uuid
from collections import deque
from datetime import datetime

import structlog

from app.errors import StateTransitionError, StoreUnavailable
from app.models.base import utcnow
from app.models.delivery import DeliveryRecord, DeliveryState
from app.services.record_store import RecordStore

logger = structlog.get_logger()

# Keep this much of a failed response body for inspection
RESPONSE_SNIPPET_LENGTH = 500


class DeliveryLedger:
    """Durable record of callback notification attempts."""

    def __init__(self, store: RecordStore | None = None, retention: int = 1000):
        self.store = store
        self.retention = retention
        self._records: dict[str, DeliveryRecord] = {}
        self._terminal: deque[str] = deque()

    async def create(
        self,
        event_kind: str,
        payload: dict,
        target_url: str,
        max_attempts: int
    ) -> DeliveryRecord:
        """Create a PENDING record holding a snapshot of the payload."""
        now = utcnow()
        record = DeliveryRecord(
            id=str(uuid.uuid4()),
            event_kind=event_kind,
            payload=copy.deepcopy(payload),
            target_url=target_url,
            state=DeliveryState.PENDING,
            attempt_count=0,
            max_attempts=max_attempts,
            last_http_status=None,
            last_error=None,
            last_response=None,
            next_retry_at=None,
            last_attempt_at=None,
            completed_at=None,
            created_at=now,
            updated_at=now,
        )
        self._records[record.id] = record
        await self._persist(record)
        return record

    def start_attempt(self, record: DeliveryRecord) -> int:
        """Count a new attempt. Returns the attempt number."""
        self._ensure_open(record)
        if record.attempt_count >= record.max_attempts:
            raise StateTransitionError(
                f"Delivery {record.id} has no attempts left ({record.attempt_count}/{record.max_attempts})"
            )
        record.attempt_count += 1
        record.last_attempt_at = utcnow()
        record.next_retry_at = None
        return record.attempt_count

    async def mark_delivered(
        self,
        record: DeliveryRecord,
        status_code: int,
        response_text: str | None = None
    ) -> None:
        self._ensure_open(record)
        if not 200 <= status_code < 300:
            raise StateTransitionError(f"Cannot mark delivered with HTTP {status_code}")
        record.state = DeliveryState.DELIVERED
        record.last_http_status = status_code
        record.last_response = _snippet(response_text)
        record.completed_at = utcnow()
        await self._finish(record)

    async def mark_retrying(
        self,
        record: DeliveryRecord,
        status_code: int | None,
        error: str,
        next_retry_at: datetime,
        response_text: str | None = None
    ) -> None:
        self._ensure_open(record)
        if record.attempt_count >= record.max_attempts:
            raise StateTransitionError(f"Delivery {record.id} has exhausted its attempts")
        record.state = DeliveryState.RETRYING
        record.last_http_status = status_code
        record.last_error = error
        record.last_response = _snippet(response_text)
        record.next_retry_at = next_retry_at
        record.updated_at = utcnow()
        await self._persist(record)

    async def mark_failed(
        self,
        record: DeliveryRecord,
        status_code: int | None,
        error: str,
        response_text: str | None = None
    ) -> None:
        self._ensure_open(record)
        if record.attempt_count != record.max_attempts:
            raise StateTransitionError(
                f"Delivery {record.id} still has attempts left ({record.attempt_count}/{record.max_attempts})"
            )
        record.state = DeliveryState.FAILED
        record.last_http_status = status_code
        record.last_error = error
        record.last_response = _snippet(response_text)
        record.completed_at = utcnow()
        await self._finish(record)

    async def get(self, delivery_id: str) -> DeliveryRecord | None:
        """Get a record by id, falling back to the store for evicted records."""
        record = self._records.get(delivery_id)
        if record is not None or self.store is None:
            return record
        try:
            return await self.store.get(DeliveryRecord, delivery_id)
        except StoreUnavailable as e:
            logger.warning("store_unavailable", operation="get_delivery", delivery_id=delivery_id, error=str(e))
            return None

    def counts(self) -> dict[str, int]:
        """Count in-memory records by state."""
        counts = {state.value: 0 for state in DeliveryState}
        for record in self._records.values():
            counts[record.state.value] += 1
        return counts

    def _ensure_open(self, record: DeliveryRecord) -> None:
        if record.state.is_terminal:
            raise StateTransitionError(
                f"Delivery {record.id} is already {record.state.value}"
            )

    async def _finish(self, record: DeliveryRecord) -> None:
        record.next_retry_at = None
        record.updated_at = utcnow()
        self._terminal.append(record.id)
        while len(self._terminal) > self.retention:
            self._records.pop(self._terminal.popleft(), None)
        await self._persist(record)

    async def _persist(self, record: DeliveryRecord) -> None:
        if self.store is None:
            return
        try:
            await self.store.save(record)
        except StoreUnavailable as e:
            logger.warning(
                "store_unavailable",
                operation="save_delivery",
                delivery_id=record.id,
                state=record.state.value,
                error=str(e)
            )


def _snippet(text: str | None) -> str | None:
    if not text:
        return None
    return text[:RESPONSE_SNIPPET_LENGTH]
