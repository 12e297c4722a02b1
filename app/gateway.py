"""
Delivery gateway.

Wires the delivery subsystem together and exposes the operations the HTTP
boundary uses: dispatch_event, submit_batch and the read-only status queries.
"""
import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import Settings
from app.database import close_database, init_database
from app.models.delivery import DeliveryRecord
from app.models.send_job import SendJob
from app.services.backoff import BackoffPolicy
from app.services.bulk_dispatch import BulkDispatchCoordinator
from app.services.delivery_ledger import DeliveryLedger
from app.services.event_dispatcher import EventDispatcher
from app.services.job_queue import JobQueue
from app.services.provider import HttpMessagingProvider, MessagingProvider
from app.services.record_store import RecordStore, SqlRecordStore
from app.services.scheduler import AsyncioScheduler
from app.worker import WorkerPool

logger = structlog.get_logger()


class DeliveryGateway:
    """Facade over the event dispatcher and the bulk send pipeline."""

    def __init__(
        self,
        dispatcher: EventDispatcher,
        coordinator: BulkDispatchCoordinator,
        pool: WorkerPool,
        scheduler: AsyncioScheduler,
        session_factory: async_sessionmaker | None = None
    ):
        self.dispatcher = dispatcher
        self.coordinator = coordinator
        self.pool = pool
        self.scheduler = scheduler
        self.session_factory = session_factory

    @property
    def ledger(self) -> DeliveryLedger:
        return self.dispatcher.ledger

    @property
    def queue(self) -> JobQueue:
        return self.coordinator.queue

    @property
    def persistent(self) -> bool:
        return self.session_factory is not None

    @classmethod
    def build(
        cls,
        settings: Settings,
        provider: MessagingProvider,
        store: RecordStore | None = None,
        session_factory: async_sessionmaker | None = None
    ) -> "DeliveryGateway":
        """Assemble the components from settings."""
        scheduler = AsyncioScheduler()
        ledger = DeliveryLedger(store=store, retention=settings.DELIVERY_RETENTION)
        dispatcher = EventDispatcher(
            ledger=ledger,
            backoff=BackoffPolicy.from_milliseconds(
                settings.RETRY_BASE_DELAY_MS,
                settings.MAX_RETRY_ATTEMPTS,
                settings.RETRY_MAX_DELAY_MS
            ),
            scheduler=scheduler,
            target_url=settings.CALLBACK_URL,
            timeout=settings.CALLBACK_TIMEOUT,
            secret=settings.CALLBACK_SECRET
        )
        queue = JobQueue(
            backoff=BackoffPolicy.from_milliseconds(
                settings.RETRY_BASE_DELAY_MS,
                settings.JOB_MAX_ATTEMPTS,
                settings.RETRY_MAX_DELAY_MS
            ),
            store=store,
            delay_ceiling_ms=settings.JOB_DELAY_CEILING_MS,
            retention_completed=settings.RETENTION_COMPLETED,
            retention_failed=settings.RETENTION_FAILED
        )
        coordinator = BulkDispatchCoordinator(
            queue,
            max_batch_size=settings.MAX_BATCH_SIZE,
            delay_ceiling_ms=settings.JOB_DELAY_CEILING_MS
        )
        pool = WorkerPool(
            queue,
            provider,
            concurrency=settings.WORKER_CONCURRENCY,
            poll_interval=settings.WORKER_POLL_INTERVAL,
            send_timeout=settings.SEND_TIMEOUT
        )
        return cls(dispatcher, coordinator, pool, scheduler, session_factory)

    @classmethod
    async def from_settings(cls, settings: Settings) -> "DeliveryGateway":
        """Connect the database (if any) and the provider bridge, then build."""
        session_factory = await init_database(settings.DATABASE_URL)
        store = SqlRecordStore(session_factory) if session_factory is not None else None
        provider = HttpMessagingProvider(
            settings.PROVIDER_URL,
            api_key=settings.PROVIDER_API_KEY,
            timeout=settings.SEND_TIMEOUT
        )
        return cls.build(settings, provider, store=store, session_factory=session_factory)

    def start(self) -> None:
        self.pool.start()
        logger.info(
            "delivery_gateway_started",
            callback_enabled=self.dispatcher.enabled,
            persistent=self.persistent
        )

    async def stop(self) -> None:
        await self.pool.stop()
        await self.scheduler.shutdown()
        await close_database(self.session_factory)
        logger.info("delivery_gateway_stopped")

    def dispatch_event(self, event_kind: str, payload: dict) -> None:
        """Fire-and-forget notification of a gateway event."""
        self.dispatcher.dispatch_event(event_kind, payload)

    async def submit_batch(self, items: list) -> list[dict[str, str]]:
        """Enqueue a batch. Raises ValidationError; acknowledges enqueue only."""
        return await self.coordinator.submit_batch(items)

    def job_counts(self) -> dict[str, int]:
        return self.queue.counts()

    async def get_job(self, job_id: str) -> SendJob | None:
        return await self.queue.get(job_id)

    async def get_delivery(self, delivery_id: str) -> DeliveryRecord | None:
        return await self.ledger.get(delivery_id)
