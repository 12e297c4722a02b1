"""
Send job queue.

Owns SendJob storage. Jobs are held in memory and written through to the
record store on every transition. claim() is the single point of mutual
exclusion in the delivery subsystem: selection and the WAITING -> ACTIVE
transition happen under one lock, so no two workers get the same job.
Store writes happen under the same lock, so a job's writes reach the
store in transition order.
"""
import asyncio
import itertools
import uuid
from collections import deque
from datetime import datetime, timedelta
from typing import Callable

import structlog

from app.errors import StateTransitionError, StoreUnavailable, ValidationError
from app.models.base import utcnow
from app.models.send_job import SendJob, SendJobState
from app.routes.metrics import track_job_completed, track_job_failed, track_job_retry
from app.services.backoff import BackoffPolicy
from app.services.record_store import RecordStore

logger = structlog.get_logger()


class JobQueue:
    """Priority queue of send jobs with delayed eligibility and retries."""

    def __init__(
        self,
        backoff: BackoffPolicy,
        store: RecordStore | None = None,
        delay_ceiling_ms: int = 60000,
        retention_completed: int = 100,
        retention_failed: int = 1000,
        clock: Callable[[], datetime] = utcnow
    ):
        self.backoff = backoff
        self.store = store
        self.delay_ceiling_ms = delay_ceiling_ms
        self.retention_completed = retention_completed
        self.retention_failed = retention_failed
        self.clock = clock
        self._jobs: dict[str, SendJob] = {}
        self._sequence = itertools.count(1)
        self._lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._completed: deque[str] = deque()
        self._failed: deque[str] = deque()

    async def submit(
        self,
        target: str,
        body: dict,
        delay_ms: int = 0,
        priority: int = 0,
        max_attempts: int | None = None
    ) -> str:
        """
        Insert a WAITING job.

        Args:
            target: Recipient identifier
            body: Message content and delivery options
            delay_ms: Earliest dispatch offset, 0..delay_ceiling_ms
            priority: Lower values are dispatched first
            max_attempts: Overrides the backoff policy's attempt budget

        Returns:
            The new job id
        """
        if not 0 <= delay_ms <= self.delay_ceiling_ms:
            raise ValidationError(
                f"delay must be between 0 and {self.delay_ceiling_ms} ms",
                details=[{"field": "delay", "message": f"got {delay_ms}"}]
            )
        if max_attempts is not None and max_attempts < 1:
            raise ValidationError(
                "max_attempts must be at least 1",
                details=[{"field": "max_attempts", "message": f"got {max_attempts}"}]
            )

        now = self.clock()
        job = SendJob(
            id=str(uuid.uuid4()),
            target=target,
            body=body,
            not_before=now + timedelta(milliseconds=delay_ms),
            priority=priority,
            sequence=next(self._sequence),
            state=SendJobState.WAITING,
            attempt_count=0,
            max_attempts=max_attempts or self.backoff.max_attempts,
            last_error=None,
            message_handle=None,
            started_at=None,
            completed_at=None,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._jobs[job.id] = job
            await self._persist(job)
        self._wakeup.set()

        logger.info("job_submitted", job_id=job.id, target=target, delay_ms=delay_ms, priority=priority)
        return job.id

    async def claim(self) -> SendJob | None:
        """
        Take the next eligible job, or None if nothing is ready.

        The returned job is ACTIVE with attempt_count already incremented.
        """
        async with self._lock:
            now = self.clock()
            ready = [
                job for job in self._jobs.values()
                if job.state == SendJobState.WAITING and job.not_before <= now
            ]
            if not ready:
                return None
            job = min(ready, key=lambda j: j.sort_key)
            job.state = SendJobState.ACTIVE
            job.attempt_count += 1
            job.started_at = now
            job.updated_at = now
            await self._persist(job)

        logger.info("job_claimed", job_id=job.id, attempt=job.attempt_count)
        return job

    async def ack(self, job_id: str, message_handle: str | None = None) -> SendJob:
        """Mark an ACTIVE job as COMPLETED."""
        async with self._lock:
            job = self._require_active(job_id)
            now = self.clock()
            job.state = SendJobState.COMPLETED
            job.message_handle = message_handle
            job.last_error = None
            job.completed_at = now
            job.updated_at = now
            evicted = self._retain(self._completed, job.id, self.retention_completed)
            await self._persist(job)
            await self._evict(evicted)

        track_job_completed()
        logger.info("job_completed", job_id=job.id, attempts=job.attempt_count)
        return job

    async def fail(self, job_id: str, error: str) -> SendJob:
        """
        Record a failed attempt on an ACTIVE job.

        Requeues with backoff while attempts remain, otherwise FAILED.
        """
        async with self._lock:
            job = self._require_active(job_id)
            now = self.clock()
            job.last_error = error
            job.updated_at = now
            evicted: list[str] = []
            if job.attempt_count < job.max_attempts:
                delay = self.backoff.delay(job.attempt_count)
                job.state = SendJobState.WAITING
                job.not_before = now + timedelta(seconds=delay)
            else:
                job.state = SendJobState.FAILED
                job.completed_at = now
                evicted = self._retain(self._failed, job.id, self.retention_failed)
            await self._persist(job)
            await self._evict(evicted)

        if job.state == SendJobState.FAILED:
            track_job_failed()
            logger.error("job_failed", job_id=job.id, attempts=job.attempt_count, error=error)
        else:
            track_job_retry()
            logger.warning(
                "job_retry_scheduled",
                job_id=job.id,
                attempt=job.attempt_count,
                max_attempts=job.max_attempts,
                not_before=job.not_before.isoformat(),
                error=error
            )
        return job

    async def get(self, job_id: str) -> SendJob | None:
        """Get a job by id, falling back to the store for evicted jobs."""
        job = self._jobs.get(job_id)
        if job is not None or self.store is None:
            return job
        try:
            return await self.store.get(SendJob, job_id)
        except StoreUnavailable as e:
            logger.warning("store_unavailable", operation="get_job", job_id=job_id, error=str(e))
            return None

    def counts(self) -> dict[str, int]:
        """Count jobs by state. Waiting jobs not yet eligible are reported as delayed."""
        now = self.clock()
        counts = {"waiting": 0, "delayed": 0, "active": 0, "completed": 0, "failed": 0}
        for job in self._jobs.values():
            if job.state == SendJobState.WAITING and job.not_before > now:
                counts["delayed"] += 1
            else:
                counts[job.state.value] += 1
        return counts

    def next_ready_in(self) -> float | None:
        """Seconds until the earliest waiting job is eligible, None if none wait."""
        now = self.clock()
        waiting = [
            job.not_before for job in self._jobs.values()
            if job.state == SendJobState.WAITING
        ]
        if not waiting:
            return None
        return max((min(waiting) - now).total_seconds(), 0.0)

    async def wait_for_work(self, timeout: float) -> None:
        """Sleep until a job is submitted or `timeout` seconds pass."""
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    def _require_active(self, job_id: str) -> SendJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise StateTransitionError(f"Unknown job: {job_id}")
        if job.state != SendJobState.ACTIVE:
            raise StateTransitionError(f"Job {job_id} is {job.state.value}, not active")
        return job

    def _retain(self, kept: deque, job_id: str, limit: int) -> list[str]:
        """Remember a terminal job; return ids pushed out by the retention limit."""
        kept.append(job_id)
        evicted = []
        while len(kept) > limit:
            old_id = kept.popleft()
            self._jobs.pop(old_id, None)
            evicted.append(old_id)
        return evicted

    async def _evict(self, job_ids: list[str]) -> None:
        if not job_ids or self.store is None:
            return
        try:
            await self.store.delete(SendJob, job_ids)
        except StoreUnavailable as e:
            logger.warning("store_unavailable", operation="evict_jobs", count=len(job_ids), error=str(e))

    async def _persist(self, job: SendJob) -> None:
        if self.store is None:
            return
        try:
            await self.store.save(job)
        except StoreUnavailable as e:
            logger.warning(
                "store_unavailable",
                operation="save_job",
                job_id=job.id,
                state=job.state.value,
                error=str(e)
            )
