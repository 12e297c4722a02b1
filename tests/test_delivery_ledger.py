"""Unit tests for the delivery ledger."""

from datetime import timedelta

import pytest

from app.errors import StateTransitionError
from app.models.base import utcnow
from app.models.delivery import DeliveryState
from app.services.delivery_ledger import DeliveryLedger
from tests.helpers import FailingStore


@pytest.fixture
def ledger():
    return DeliveryLedger()


class TestDeliveryLedger:
    """Tests for DeliveryLedger state transitions."""

    async def test_create_snapshots_payload(self, ledger):
        payload = {"body": "hello", "meta": {"seen": False}}

        record = await ledger.create("message", payload, "http://hooks.test/cb", max_attempts=3)
        payload["meta"]["seen"] = True

        assert record.state == DeliveryState.PENDING
        assert record.attempt_count == 0
        assert record.payload == {"body": "hello", "meta": {"seen": False}}
        assert record.completed_at is None

    async def test_delivered_sets_completed_at(self, ledger):
        record = await ledger.create("message", {}, "http://hooks.test/cb", max_attempts=3)
        ledger.start_attempt(record)

        await ledger.mark_delivered(record, 204)

        assert record.state == DeliveryState.DELIVERED
        assert record.last_http_status == 204
        assert record.completed_at is not None

    async def test_delivered_requires_2xx(self, ledger):
        record = await ledger.create("message", {}, "http://hooks.test/cb", max_attempts=3)
        ledger.start_attempt(record)

        with pytest.raises(StateTransitionError):
            await ledger.mark_delivered(record, 500)

    async def test_failed_requires_exhausted_attempts(self, ledger):
        record = await ledger.create("message", {}, "http://hooks.test/cb", max_attempts=2)
        ledger.start_attempt(record)

        with pytest.raises(StateTransitionError):
            await ledger.mark_failed(record, 500, "HTTP 500")

        await ledger.mark_retrying(record, 500, "HTTP 500", utcnow() + timedelta(seconds=1))
        ledger.start_attempt(record)
        await ledger.mark_failed(record, 500, "HTTP 500")

        assert record.state == DeliveryState.FAILED
        assert record.attempt_count == record.max_attempts
        assert record.completed_at is not None

    async def test_terminal_records_reject_transitions(self, ledger):
        record = await ledger.create("message", {}, "http://hooks.test/cb", max_attempts=3)
        ledger.start_attempt(record)
        await ledger.mark_delivered(record, 200)

        with pytest.raises(StateTransitionError):
            ledger.start_attempt(record)
        with pytest.raises(StateTransitionError):
            await ledger.mark_retrying(record, 500, "HTTP 500", utcnow())
        assert record.state == DeliveryState.DELIVERED

    async def test_attempts_never_exceed_max(self, ledger):
        record = await ledger.create("message", {}, "http://hooks.test/cb", max_attempts=1)
        ledger.start_attempt(record)

        with pytest.raises(StateTransitionError):
            ledger.start_attempt(record)
        assert record.attempt_count == 1

    async def test_retention_evicts_oldest_terminal_records(self):
        ledger = DeliveryLedger(retention=2)
        records = []
        for _ in range(3):
            record = await ledger.create("message", {}, "http://hooks.test/cb", max_attempts=1)
            ledger.start_attempt(record)
            await ledger.mark_delivered(record, 200)
            records.append(record)

        assert await ledger.get(records[0].id) is None
        assert await ledger.get(records[2].id) is records[2]

    async def test_counts_by_state(self, ledger):
        first = await ledger.create("message", {}, "http://hooks.test/cb", max_attempts=3)
        await ledger.create("call", {}, "http://hooks.test/cb", max_attempts=3)
        ledger.start_attempt(first)
        await ledger.mark_delivered(first, 200)

        counts = ledger.counts()

        assert counts["delivered"] == 1
        assert counts["pending"] == 1
        assert counts["failed"] == 0

    async def test_unavailable_store_degrades_to_memory(self):
        store = FailingStore()
        ledger = DeliveryLedger(store=store)

        record = await ledger.create("message", {"a": 1}, "http://hooks.test/cb", max_attempts=3)
        ledger.start_attempt(record)
        await ledger.mark_delivered(record, 200)

        assert store.calls == 2
        assert await ledger.get(record.id) is record
        assert await ledger.get("missing") is None
