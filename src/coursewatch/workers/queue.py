"""Delivery queues with per-queue retry/backoff policy and lifecycle events."""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from coursewatch.models.enums import BackoffType, JobKind, JobState, QueueName
from coursewatch.services.id_generator import generate_id
from coursewatch.workers.backends import Job, QueueBackend

logger = logging.getLogger(__name__)

QUEUE_EVENTS = ("waiting", "active", "completed", "failed", "error")

JobHandler = Callable[[Job], Awaitable[Any]]


@dataclass(frozen=True)
class QueuePolicy:
    """Default job options applied to every job added to a queue."""

    attempts: int
    backoff_type: BackoffType = BackoffType.EXPONENTIAL
    backoff_delay_ms: int = 2000
    remove_on_complete: int | None = 50
    remove_on_fail: int | None = 20

    def backoff_ms(self, attempts_made: int) -> int:
        """Delay before the next attempt after ``attempts_made`` failures."""
        if self.backoff_type == BackoffType.FIXED:
            return self.backoff_delay_ms
        return self.backoff_delay_ms * 2 ** max(attempts_made - 1, 0)


DEFAULT_POLICIES: dict[QueueName, QueuePolicy] = {
    QueueName.FACILITATOR_REMINDERS: QueuePolicy(attempts=3, backoff_delay_ms=2000),
    QueueName.MANAGER_ALERTS: QueuePolicy(attempts=3, backoff_delay_ms=2000),
    QueueName.DEADLINE_WARNINGS: QueuePolicy(attempts=2, backoff_delay_ms=1000),
}

QUEUE_JOB_KINDS: dict[QueueName, JobKind] = {
    QueueName.FACILITATOR_REMINDERS: JobKind.SEND_REMINDER,
    QueueName.MANAGER_ALERTS: JobKind.SEND_ALERT,
    QueueName.DEADLINE_WARNINGS: JobKind.SEND_WARNING,
}


class DeliveryQueue:
    """A named at-least-once job queue drained by ``concurrency`` worker tasks."""

    def __init__(
        self,
        name: str,
        policy: QueuePolicy,
        backend: QueueBackend,
        *,
        concurrency: int = 1,
        poll_interval: float = 0.5,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.policy = policy
        self.backend = backend
        self.concurrency = max(concurrency, 1)
        self.poll_interval = poll_interval
        self._clock = clock
        self._handlers: dict[str, JobHandler] = {}
        self._listeners: dict[str, list[Callable[..., Any]]] = {e: [] for e in QUEUE_EVENTS}
        self._workers: list[asyncio.Task] = []
        self._closing = False
        self._close_task: asyncio.Future | None = None

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    # ── events ──────────────────────────────────────────────────────

    def on(self, event: str, listener: Callable[..., Any]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown queue event '{event}'")
        self._listeners[event].append(listener)

    async def _emit(self, event: str, *args: Any) -> None:
        for listener in self._listeners[event]:
            try:
                result = listener(self, *args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for '%s' failed in queue %s", event, self.name)

    # ── producer side ───────────────────────────────────────────────

    async def add(
        self,
        job_name: str,
        data: dict,
        *,
        delay_ms: int = 0,
        job_id: str | None = None,
    ) -> Job:
        now = self._now_ms()
        job = Job(
            job_id=job_id or generate_id(f"{self.name}-"),
            name=job_name,
            queue=self.name,
            data=data,
            created_at=now,
            run_at=now + max(delay_ms, 0),
            max_attempts=self.policy.attempts,
            state=JobState.DELAYED if delay_ms > 0 else JobState.WAITING,
            delay_ms=max(delay_ms, 0),
        )
        stored = await self.backend.add(job)
        if stored is job and job.state == JobState.WAITING:
            await self._emit("waiting", job.job_id)
        return stored

    # ── consumer side ───────────────────────────────────────────────

    def process(self, job_name: str, handler: JobHandler) -> None:
        self._handlers[job_name] = handler

    async def process_next(self) -> bool:
        """Claim and run at most one eligible job. Returns True if one ran."""
        job = await self.backend.claim(self.name, self._now_ms())
        if job is None:
            return False

        await self._emit("active", job)
        handler = self._handlers.get(job.name)
        try:
            if handler is None:
                raise RuntimeError(f"Missing process handler for job type {job.name}")
            result = await handler(job)
        except Exception as exc:
            await self._handle_failure(job, exc)
            return True

        job.return_value = result
        await self.backend.complete(job, self._now_ms(), keep=self.policy.remove_on_complete)
        await self._emit("completed", job, result)
        return True

    async def _handle_failure(self, job: Job, exc: Exception) -> None:
        job.attempts_made += 1
        job.failed_reason = str(exc) or type(exc).__name__
        if job.attempts_made < self.policy.attempts:
            delay = self.policy.backoff_ms(job.attempts_made)
            await self.backend.retry(job, self._now_ms() + delay)
            logger.info(
                "Job %s in %s failed attempt %d/%d, retrying in %dms",
                job.job_id, self.name, job.attempts_made, self.policy.attempts, delay,
            )
        else:
            await self.backend.fail(job, self._now_ms(), keep=self.policy.remove_on_fail)
        await self._emit("failed", job, exc)

    async def _worker_loop(self, worker_no: int) -> None:
        while not self._closing:
            try:
                processed = await self.process_next()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Queue %s worker %d error", self.name, worker_no)
                await self._emit("error", exc)
                processed = False
            if not processed and not self._closing:
                await asyncio.sleep(self.poll_interval)

    async def start(self) -> None:
        if self._workers or self._closing:
            return
        recovered = await self.backend.recover_active(self.name)
        if recovered:
            logger.warning("Re-queued %d stalled jobs in %s", recovered, self.name)
        self._workers = [
            asyncio.create_task(self._worker_loop(n), name=f"{self.name}-worker-{n}")
            for n in range(self.concurrency)
        ]

    async def close(self, timeout: float = 10.0) -> None:
        """Stop workers, letting in-flight attempts finish. Safe to call repeatedly."""
        if self._close_task is None:
            self._close_task = asyncio.ensure_future(self._close(timeout))
        await asyncio.shield(self._close_task)

    async def _close(self, timeout: float) -> None:
        self._closing = True
        if not self._workers:
            return
        _, pending = await asyncio.wait(self._workers, timeout=timeout + self.poll_interval)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._workers = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers) and not self._closing

    # ── inspection / hygiene ────────────────────────────────────────

    async def get_stats(self) -> dict[str, int]:
        counts = await self.backend.counts(self.name)
        return {
            "waiting": counts.get("waiting", 0),
            "active": counts.get("active", 0),
            "completed": counts.get("completed", 0),
            "failed": counts.get("failed", 0),
            "delayed": counts.get("delayed", 0),
        }

    async def get_jobs(self, state: JobState) -> list[Job]:
        return await self.backend.list_jobs(self.name, state)

    async def get_job(self, job_id: str) -> Job | None:
        return await self.backend.get_job(self.name, job_id)

    async def clean(self, grace_ms: int, state: JobState) -> int:
        """Remove ``state`` jobs that finished more than ``grace_ms`` ago."""
        return await self.backend.clean(self.name, self._now_ms() - grace_ms, state)
