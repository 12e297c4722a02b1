"""
Send worker pool for RelayGate.

A fixed number of asyncio workers claim jobs from the shared JobQueue and
send them through the MessagingProvider. Workers hold no state between
jobs; JobQueue.claim() guarantees each job goes to exactly one of them.
"""
import asyncio

import structlog

from app.errors import ProviderError
from app.logging_config import get_logger
from app.models.send_job import SendJob
from app.routes.metrics import update_queue_depth
from app.sentry_config import capture_exception
from app.services.job_queue import JobQueue
from app.services.provider import MessagingProvider, ProviderStatus

logger = structlog.get_logger()


class Worker:
    """Processes one job at a time."""

    def __init__(
        self,
        worker_id: int,
        queue: JobQueue,
        provider: MessagingProvider,
        send_timeout: float = 30.0
    ):
        self.worker_id = worker_id
        self.queue = queue
        self.provider = provider
        self.send_timeout = send_timeout
        self.busy = False

    async def process_next(self, status: ProviderStatus) -> SendJob | None:
        """
        Claim and send the next eligible job.

        Nothing is claimed while the provider is not ready, so waiting jobs
        do not spend attempts during a disconnect.

        Returns:
            The job after ack/fail, or None if nothing was claimed
        """
        if not status.ready:
            return None

        job = await self.queue.claim()
        if job is None:
            return None

        log = get_logger(component="worker", worker_id=self.worker_id, job_id=job.id, attempt=job.attempt_count)
        body = job.body or {}
        log.info("job_processing", target=job.target)

        try:
            handle = await asyncio.wait_for(
                self.provider.send(job.target, body.get("message", ""), body.get("options") or {}),
                timeout=self.send_timeout
            )
        except asyncio.TimeoutError:
            return await self.queue.fail(job.id, f"Send timed out after {self.send_timeout}s")
        except asyncio.CancelledError:
            log.warning("job_cancelled")
            await self.queue.fail(job.id, "cancelled at shutdown")
            raise
        except ProviderError as e:
            log.warning("job_send_failed", error=str(e))
            return await self.queue.fail(job.id, str(e))
        except Exception as e:
            log.error("job_send_crashed", error=str(e), exc_info=True)
            capture_exception(e)
            return await self.queue.fail(job.id, f"{type(e).__name__}: {e}")

        return await self.queue.ack(job.id, handle or None)


class WorkerPool:
    """Runs `concurrency` workers against one queue."""

    def __init__(
        self,
        queue: JobQueue,
        provider: MessagingProvider,
        concurrency: int = 2,
        poll_interval: float = 1.0,
        send_timeout: float = 30.0
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.queue = queue
        self.provider = provider
        self.poll_interval = poll_interval
        self.send_timeout = send_timeout
        self.workers = [
            Worker(i + 1, queue, provider, send_timeout=send_timeout)
            for i in range(concurrency)
        ]
        self._tasks: list[asyncio.Task] = []
        self._stopping = False

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._stopping = False
        self._tasks = [
            asyncio.create_task(self._run(worker), name=f"send-worker-{worker.worker_id}")
            for worker in self.workers
        ]
        logger.info("worker_pool_started", concurrency=len(self.workers))

    async def stop(self) -> None:
        """
        Stop idle workers now and let in-flight sends finish.

        Sends still running after the grace period are cancelled and their
        jobs are failed with "cancelled at shutdown".
        """
        self._stopping = True
        for worker, task in zip(self.workers, self._tasks):
            if not worker.busy:
                task.cancel()
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=self.send_timeout + 1)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("worker_pool_stopped")

    async def _provider_status(self) -> ProviderStatus:
        try:
            return await self.provider.status()
        except Exception as e:
            logger.warning("provider_status_failed", error=str(e))
            return ProviderStatus(ready=False, detail=str(e))

    async def _run(self, worker: Worker) -> None:
        while not self._stopping:
            try:
                ready_in = self.queue.next_ready_in()
                if ready_in == 0:
                    status = await self._provider_status()
                    if not status.ready:
                        logger.debug("provider_not_ready", worker_id=worker.worker_id, detail=status.detail)
                    worker.busy = True
                    try:
                        job = await worker.process_next(status)
                    finally:
                        worker.busy = False
                    if job is not None:
                        update_queue_depth(self.queue.counts())
                        continue

                timeout = self.poll_interval
                if ready_in:
                    timeout = min(self.poll_interval, ready_in)
                await self.queue.wait_for_work(timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("worker_loop_error", worker_id=worker.worker_id, error=str(e), exc_info=True)
                capture_exception(e)
                await asyncio.sleep(self.poll_interval)
