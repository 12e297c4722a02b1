"""
HTTP API tests.

The app is driven in-process through httpx.ASGITransport with a gateway
built from fakes. The lifespan does not run, so the worker pool stays
stopped and submitted jobs remain queued.
"""

import httpx
import pytest

from app.config import settings
from app.gateway import DeliveryGateway
from app.main import create_app
from app.services.backoff import BackoffPolicy
from app.services.bulk_dispatch import BulkDispatchCoordinator
from app.services.delivery_ledger import DeliveryLedger
from app.services.event_dispatcher import EventDispatcher
from app.services.job_queue import JobQueue
from app.services.rate_limiter import rate_limiter
from app.worker import WorkerPool
from tests.helpers import FakeProvider, RecordingScheduler, callback_transport

API_KEY = "test-api-key"
HEADERS = {"x-api-key": API_KEY}


@pytest.fixture(autouse=True)
def api_settings(monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", API_KEY)

    async def allow(client_key):
        return True, 0

    monkeypatch.setattr(rate_limiter, "is_allowed", allow)


@pytest.fixture
def callback_requests():
    return []


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def gateway(scheduler, callback_requests):
    dispatcher = EventDispatcher(
        ledger=DeliveryLedger(),
        backoff=BackoffPolicy(base_delay=0.1, max_attempts=3),
        scheduler=scheduler,
        target_url="http://hooks.test/callback",
        transport=callback_transport(200, callback_requests),
    )
    queue = JobQueue(backoff=BackoffPolicy(base_delay=0.1, max_attempts=3))
    coordinator = BulkDispatchCoordinator(queue)
    pool = WorkerPool(queue, FakeProvider(), concurrency=1)
    return DeliveryGateway(dispatcher, coordinator, pool, scheduler)


@pytest.fixture
async def client(gateway):
    app = create_app(gateway)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestHealth:

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    async def test_health_reports_components(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["ready"] is True
        assert data["database"] == "disabled"
        assert data["callback"] is True
        assert data["workers"] is False

    async def test_request_id_is_echoed(self, client):
        response = await client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["x-request-id"] == "req-123"


class TestAuth:

    async def test_missing_key_rejected(self, client):
        response = await client.get("/api/jobs/counts")

        assert response.status_code == 401

    async def test_bearer_token_accepted(self, client):
        response = await client.get(
            "/api/jobs/counts", headers={"Authorization": f"Bearer {API_KEY}"}
        )

        assert response.status_code == 200


class TestBulkMessages:

    async def test_batch_is_queued(self, client, gateway):
        response = await client.post(
            "/api/send-bulk-messages",
            json={"messages": [
                {"number": "15550001", "message": "one"},
                {"number": "123@g.us", "message": "two", "delay": 1000},
            ]},
            headers=HEADERS,
        )

        assert response.status_code == 202
        data = response.json()
        assert data["success"] is True
        assert data["queued"] == 2
        assert [r["target"] for r in data["results"]] == ["15550001@c.us", "123@g.us"]
        assert gateway.job_counts()["waiting"] == 1
        assert gateway.job_counts()["delayed"] == 1

    async def test_oversized_batch_rejected(self, client, gateway):
        messages = [{"number": str(1000 + i), "message": "hi"} for i in range(101)]

        response = await client.post(
            "/api/send-bulk-messages", json={"messages": messages}, headers=HEADERS
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation Error"
        assert sum(gateway.job_counts().values()) == 0

    async def test_invalid_item_details(self, client):
        response = await client.post(
            "/api/send-bulk-messages",
            json={"messages": [{"number": "abc", "message": "hi"}]},
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "messages.0.number"

    async def test_rate_limited(self, client, monkeypatch):
        async def deny(client_key):
            return False, 42

        monkeypatch.setattr(rate_limiter, "is_allowed", deny)

        response = await client.post(
            "/api/send-bulk-messages",
            json={"messages": [{"number": "111", "message": "hi"}]},
            headers=HEADERS,
        )

        assert response.status_code == 429
        assert response.headers["retry-after"] == "42"


class TestJobsAndDeliveries:

    async def test_get_job(self, client):
        response = await client.post(
            "/api/send-bulk-messages",
            json={"messages": [{"number": "111", "message": "hi"}]},
            headers=HEADERS,
        )
        job_id = response.json()["results"][0]["jobId"]

        response = await client.get(f"/api/jobs/{job_id}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["state"] == "waiting"
        assert response.json()["target"] == "111@c.us"

    async def test_unknown_job_is_404(self, client):
        response = await client.get("/api/jobs/does-not-exist", headers=HEADERS)

        assert response.status_code == 404

    async def test_unknown_delivery_is_404(self, client):
        response = await client.get("/api/deliveries/does-not-exist", headers=HEADERS)

        assert response.status_code == 404


class TestEvents:

    async def test_event_is_accepted_and_delivered(self, client, gateway, scheduler, callback_requests):
        response = await client.post(
            "/api/events",
            json={"eventKind": "message_ack", "payload": {"id": "m1", "ack": 4}},
            headers=HEADERS,
        )

        assert response.status_code == 202
        assert response.json() == {
            "accepted": True,
            "eventKind": "message_ack",
            "callbackEnabled": True,
        }
        assert callback_requests == []

        await scheduler.run_all()

        assert len(callback_requests) == 1
        assert gateway.ledger.counts()["delivered"] == 1
        delivery_id = callback_requests[0].headers["x-relaygate-delivery"]
        response = await client.get(f"/api/deliveries/{delivery_id}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["payload"]["ackName"] == "READ"

    async def test_unknown_event_kind_rejected(self, client, scheduler):
        response = await client.post(
            "/api/events",
            json={"eventKind": "typing", "payload": {}},
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert scheduler.scheduled == []
