"""
Event Dispatcher

Forwards gateway events to the configured callback URL with retry logic.
Every attempt outcome is recorded in the delivery ledger; retries are
scheduled on the scheduler and never block the caller.
"""
import copy
import json
import hmac
import hashlib
from datetime import timedelta

import httpx
import structlog

from app.errors import CallbackDeliveryError
from app.models.base import utcnow
from app.models.delivery import DeliveryRecord
from app.routes.metrics import track_webhook_sent, track_webhook_failed
from app.services.backoff import BackoffPolicy
from app.services.delivery_ledger import DeliveryLedger
from app.services.scheduler import Scheduler

logger = structlog.get_logger()

USER_AGENT = "RelayGate-Webhook/1.0"


def generate_webhook_signature(payload: str, secret: str) -> str:
    """Generate HMAC-SHA256 signature for webhook payload."""
    return hmac.new(
        secret.encode(),
        payload.encode(),
        hashlib.sha256
    ).hexdigest()


class EventDispatcher:
    """Delivers events to the callback endpoint and retries failures."""

    def __init__(
        self,
        ledger: DeliveryLedger,
        backoff: BackoffPolicy,
        scheduler: Scheduler,
        target_url: str = "",
        timeout: float = 10.0,
        secret: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self.ledger = ledger
        self.backoff = backoff
        self.scheduler = scheduler
        self.target_url = target_url
        self.timeout = timeout
        self.secret = secret
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.target_url)

    def dispatch_event(self, event_kind: str, payload: dict) -> None:
        """
        Fire-and-forget dispatch to the configured callback URL.

        The payload is copied now so later changes by the caller are not sent.
        """
        if not self.enabled:
            logger.debug("webhook_disabled", event_kind=event_kind)
            return
        snapshot = copy.deepcopy(payload)

        async def run():
            await self.dispatch(event_kind, snapshot)

        self.scheduler.schedule(0, run)

    async def dispatch(
        self,
        event_kind: str,
        payload: dict,
        target_url: str | None = None
    ) -> DeliveryRecord | None:
        """
        Create a delivery record and perform the first attempt.

        Args:
            event_kind: Event tag, e.g. "message" or "group_join"
            payload: Event data (snapshotted into the record)
            target_url: Overrides the configured callback URL

        Returns:
            The delivery record after attempt 1, or None if no URL is configured
        """
        url = self.target_url if target_url is None else target_url
        if not url:
            logger.debug("webhook_disabled", event_kind=event_kind)
            return None

        record = await self.ledger.create(
            event_kind=event_kind,
            payload=payload,
            target_url=url,
            max_attempts=self.backoff.max_attempts
        )
        await self._attempt(record)
        return record

    async def _attempt(self, record: DeliveryRecord) -> None:
        attempt = self.ledger.start_attempt(record)
        log = logger.bind(
            delivery_id=record.id,
            event_kind=record.event_kind,
            attempt=attempt,
            max_attempts=record.max_attempts
        )

        try:
            response = await self._post(record)
        except CallbackDeliveryError as e:
            status_code = e.status_code
            error = str(e)
            response_text = e.response_text
        else:
            await self.ledger.mark_delivered(record, response.status_code, response.text)
            track_webhook_sent(record.event_kind, "delivered")
            log.info("webhook_delivered", status_code=response.status_code)
            return

        if self.backoff.should_retry(record.attempt_count):
            delay = self.backoff.delay(record.attempt_count)
            await self.ledger.mark_retrying(
                record,
                status_code=status_code,
                error=error,
                next_retry_at=utcnow() + timedelta(seconds=delay),
                response_text=response_text
            )
            track_webhook_sent(record.event_kind, "retrying")
            log.warning("webhook_attempt_failed", status_code=status_code, error=error, retry_in=delay)

            async def retry():
                await self._attempt(record)

            self.scheduler.schedule(delay, retry)
        else:
            await self.ledger.mark_failed(
                record,
                status_code=status_code,
                error=error,
                response_text=response_text
            )
            track_webhook_sent(record.event_kind, "failed")
            track_webhook_failed(record.event_kind)
            log.error("webhook_failed", status_code=status_code, error=error, url=record.target_url)

    async def _post(self, record: DeliveryRecord) -> httpx.Response:
        """POST one attempt. Raises CallbackDeliveryError on anything but 2xx."""
        try:
            body = json.dumps({
                "eventKind": record.event_kind,
                "payload": record.payload,
                "timestamp": utcnow().isoformat(),
            })
        except (TypeError, ValueError) as e:
            raise CallbackDeliveryError(f"Payload is not JSON serialisable: {e}") from e
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-RelayGate-Event": record.event_kind,
            "X-RelayGate-Delivery": record.id,
        }
        if self.secret:
            headers["X-RelayGate-Signature"] = generate_webhook_signature(body, self.secret)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(record.target_url, content=body, headers=headers)
        except httpx.TimeoutException as e:
            raise CallbackDeliveryError(f"Timeout after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise CallbackDeliveryError(f"{type(e).__name__}: {e}") from e
        except Exception as e:
            # InvalidURL and transport bugs are not HTTPError subclasses
            raise CallbackDeliveryError(f"{type(e).__name__}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise CallbackDeliveryError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                response_text=response.text
            )
        return response
