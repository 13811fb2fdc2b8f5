"""Storage backends for delivery queues: Redis or in-process fallback."""

import json
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from typing import Any

from coursewatch.models.enums import JobState

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """A unit of queued work and its delivery bookkeeping (times in epoch ms)."""

    job_id: str
    name: str
    queue: str
    data: dict
    created_at: int
    run_at: int
    max_attempts: int = 1
    attempts_made: int = 0
    state: JobState = JobState.WAITING
    processed_at: int | None = None
    finished_at: int | None = None
    failed_reason: str | None = None
    return_value: Any = None
    delay_ms: int = 0

    @property
    def id(self) -> str:
        return self.job_id

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, raw: str) -> "Job":
        data = json.loads(raw)
        data["state"] = JobState(data["state"])
        return cls(**data)


class QueueBackend(ABC):
    """Persistence contract shared by all delivery queues."""

    @abstractmethod
    async def add(self, job: Job) -> Job:
        """Store a new job. If ``job_id`` already exists the stored job is returned unchanged."""

    @abstractmethod
    async def claim(self, queue: str, now_ms: int) -> Job | None:
        """Promote due delayed jobs, then move the oldest waiting job to active."""

    @abstractmethod
    async def complete(self, job: Job, now_ms: int, keep: int | None) -> None: ...

    @abstractmethod
    async def retry(self, job: Job, run_at_ms: int) -> None: ...

    @abstractmethod
    async def fail(self, job: Job, now_ms: int, keep: int | None) -> None: ...

    @abstractmethod
    async def get_job(self, queue: str, job_id: str) -> Job | None: ...

    @abstractmethod
    async def list_jobs(self, queue: str, state: JobState) -> list[Job]: ...

    @abstractmethod
    async def counts(self, queue: str) -> dict[str, int]: ...

    @abstractmethod
    async def clean(self, queue: str, cutoff_ms: int, state: JobState) -> int:
        """Remove ``completed``/``failed`` jobs finished at or before ``cutoff_ms``."""

    @abstractmethod
    async def recover_active(self, queue: str) -> int:
        """Move jobs left active by a previous process back to waiting."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


# ── In-process backend ─────────────────────────────────────────────


@dataclass
class _MemoryQueue:
    jobs: "OrderedDict[str, Job]" = field(default_factory=OrderedDict)
    waiting: list[str] = field(default_factory=list)


class MemoryQueueBackend(QueueBackend):
    """In-process backend for local mode and tests. Not durable across restarts."""

    def __init__(self) -> None:
        self._queues: dict[str, _MemoryQueue] = {}

    def _q(self, queue: str) -> _MemoryQueue:
        return self._queues.setdefault(queue, _MemoryQueue())

    async def add(self, job: Job) -> Job:
        q = self._q(job.queue)
        existing = q.jobs.get(job.job_id)
        if existing is not None:
            return existing
        q.jobs[job.job_id] = job
        if job.state == JobState.WAITING:
            q.waiting.append(job.job_id)
        return job

    async def claim(self, queue: str, now_ms: int) -> Job | None:
        q = self._q(queue)
        due = sorted(
            (j for j in q.jobs.values() if j.state == JobState.DELAYED and j.run_at <= now_ms),
            key=lambda j: j.run_at,
        )
        for job in due:
            job.state = JobState.WAITING
            q.waiting.append(job.job_id)

        while q.waiting:
            job = q.jobs.get(q.waiting.pop(0))
            if job is None or job.state != JobState.WAITING:
                continue
            job.state = JobState.ACTIVE
            job.processed_at = now_ms
            return job
        return None

    async def complete(self, job: Job, now_ms: int, keep: int | None) -> None:
        job.state = JobState.COMPLETED
        job.finished_at = now_ms
        self._trim(job.queue, JobState.COMPLETED, keep)

    async def retry(self, job: Job, run_at_ms: int) -> None:
        job.state = JobState.DELAYED
        job.run_at = run_at_ms

    async def fail(self, job: Job, now_ms: int, keep: int | None) -> None:
        job.state = JobState.FAILED
        job.finished_at = now_ms
        self._trim(job.queue, JobState.FAILED, keep)

    def _trim(self, queue: str, state: JobState, keep: int | None) -> None:
        if keep is None:
            return
        q = self._q(queue)
        finished = sorted(
            (j for j in q.jobs.values() if j.state == state),
            key=lambda j: j.finished_at or 0,
        )
        for job in finished[: max(len(finished) - keep, 0)]:
            del q.jobs[job.job_id]

    async def get_job(self, queue: str, job_id: str) -> Job | None:
        return self._q(queue).jobs.get(job_id)

    async def list_jobs(self, queue: str, state: JobState) -> list[Job]:
        return [j for j in self._q(queue).jobs.values() if j.state == state]

    async def counts(self, queue: str) -> dict[str, int]:
        counts = {state.value: 0 for state in JobState}
        for job in self._q(queue).jobs.values():
            counts[job.state.value] += 1
        return counts

    async def clean(self, queue: str, cutoff_ms: int, state: JobState) -> int:
        if state not in (JobState.COMPLETED, JobState.FAILED):
            raise ValueError(f"Only completed/failed jobs can be cleaned, got {state}")
        q = self._q(queue)
        stale = [
            j.job_id for j in q.jobs.values()
            if j.state == state and (j.finished_at or 0) <= cutoff_ms
        ]
        for job_id in stale:
            del q.jobs[job_id]
        return len(stale)

    async def recover_active(self, queue: str) -> int:
        q = self._q(queue)
        recovered = 0
        for job in q.jobs.values():
            if job.state == JobState.ACTIVE:
                job.state = JobState.WAITING
                q.waiting.append(job.job_id)
                recovered += 1
        return recovered


# ── Redis backend ──────────────────────────────────────────────────


class RedisQueueBackend(QueueBackend):
    """Durable backend on ``redis.asyncio``.

    Per queue: ``job:<id>`` JSON strings, a ``wait`` list, an ``active`` list,
    and ``delayed`` / ``completed`` / ``failed`` sorted sets scored by epoch ms.
    """

    def __init__(self, redis, prefix: str = "coursewatch:queues", owns_connection: bool = False):
        self._redis = redis
        self._prefix = prefix
        self._owns_connection = owns_connection

    @classmethod
    def from_url(cls, url: str, prefix: str = "coursewatch:queues") -> "RedisQueueBackend":
        import redis.asyncio as aioredis

        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix, owns_connection=True)

    def _key(self, queue: str, part: str) -> str:
        return f"{self._prefix}:{queue}:{part}"

    def _job_key(self, queue: str, job_id: str) -> str:
        return self._key(queue, f"job:{job_id}")

    async def _save(self, job: Job) -> None:
        await self._redis.set(self._job_key(job.queue, job.job_id), job.to_json())

    async def add(self, job: Job) -> Job:
        created = await self._redis.set(self._job_key(job.queue, job.job_id), job.to_json(), nx=True)
        if not created:
            existing = await self.get_job(job.queue, job.job_id)
            if existing is not None:
                return existing
        if job.state == JobState.DELAYED:
            await self._redis.zadd(self._key(job.queue, "delayed"), {job.job_id: job.run_at})
        else:
            await self._redis.rpush(self._key(job.queue, "wait"), job.job_id)
        return job

    async def claim(self, queue: str, now_ms: int) -> Job | None:
        delayed_key = self._key(queue, "delayed")
        wait_key = self._key(queue, "wait")
        for job_id in await self._redis.zrangebyscore(delayed_key, 0, now_ms):
            # zrem succeeding means this caller owns the promotion
            if await self._redis.zrem(delayed_key, job_id):
                job = await self.get_job(queue, job_id)
                if job is not None:
                    job.state = JobState.WAITING
                    await self._save(job)
                    await self._redis.rpush(wait_key, job_id)

        while True:
            job_id = await self._redis.lmove(wait_key, self._key(queue, "active"), "LEFT", "RIGHT")
            if job_id is None:
                return None
            job = await self.get_job(queue, job_id)
            if job is None:
                await self._redis.lrem(self._key(queue, "active"), 1, job_id)
                continue
            job.state = JobState.ACTIVE
            job.processed_at = now_ms
            await self._save(job)
            return job

    async def complete(self, job: Job, now_ms: int, keep: int | None) -> None:
        job.state = JobState.COMPLETED
        job.finished_at = now_ms
        await self._finish(job, "completed", keep)

    async def retry(self, job: Job, run_at_ms: int) -> None:
        job.state = JobState.DELAYED
        job.run_at = run_at_ms
        await self._save(job)
        await self._redis.lrem(self._key(job.queue, "active"), 1, job.job_id)
        await self._redis.zadd(self._key(job.queue, "delayed"), {job.job_id: run_at_ms})

    async def fail(self, job: Job, now_ms: int, keep: int | None) -> None:
        job.state = JobState.FAILED
        job.finished_at = now_ms
        await self._finish(job, "failed", keep)

    async def _finish(self, job: Job, set_name: str, keep: int | None) -> None:
        await self._save(job)
        await self._redis.lrem(self._key(job.queue, "active"), 1, job.job_id)
        finished_key = self._key(job.queue, set_name)
        await self._redis.zadd(finished_key, {job.job_id: job.finished_at})
        if keep is not None:
            overflow = await self._redis.zrange(finished_key, 0, -(keep + 1))
            await self._remove(job.queue, finished_key, overflow)

    async def _remove(self, queue: str, set_key: str, job_ids: list[str]) -> int:
        if not job_ids:
            return 0
        await self._redis.zrem(set_key, *job_ids)
        await self._redis.delete(*(self._job_key(queue, job_id) for job_id in job_ids))
        return len(job_ids)

    async def get_job(self, queue: str, job_id: str) -> Job | None:
        raw = await self._redis.get(self._job_key(queue, job_id))
        return Job.from_json(raw) if raw else None

    async def list_jobs(self, queue: str, state: JobState) -> list[Job]:
        if state == JobState.WAITING:
            ids = await self._redis.lrange(self._key(queue, "wait"), 0, -1)
        elif state == JobState.ACTIVE:
            ids = await self._redis.lrange(self._key(queue, "active"), 0, -1)
        else:
            ids = await self._redis.zrange(self._key(queue, state.value), 0, -1)
        jobs = [await self.get_job(queue, job_id) for job_id in ids]
        return [j for j in jobs if j is not None]

    async def counts(self, queue: str) -> dict[str, int]:
        return {
            JobState.WAITING.value: await self._redis.llen(self._key(queue, "wait")),
            JobState.ACTIVE.value: await self._redis.llen(self._key(queue, "active")),
            JobState.COMPLETED.value: await self._redis.zcard(self._key(queue, "completed")),
            JobState.FAILED.value: await self._redis.zcard(self._key(queue, "failed")),
            JobState.DELAYED.value: await self._redis.zcard(self._key(queue, "delayed")),
        }

    async def clean(self, queue: str, cutoff_ms: int, state: JobState) -> int:
        if state not in (JobState.COMPLETED, JobState.FAILED):
            raise ValueError(f"Only completed/failed jobs can be cleaned, got {state}")
        set_key = self._key(queue, state.value)
        stale = await self._redis.zrangebyscore(set_key, 0, cutoff_ms)
        return await self._remove(queue, set_key, stale)

    async def recover_active(self, queue: str) -> int:
        recovered = 0
        while True:
            job_id = await self._redis.lmove(self._key(queue, "active"), self._key(queue, "wait"), "RIGHT", "LEFT")
            if job_id is None:
                return recovered
            job = await self.get_job(queue, job_id)
            if job is not None:
                job.state = JobState.WAITING
                await self._save(job)
            recovered += 1

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        if self._owns_connection:
            await self._redis.aclose()


def create_queue_backend(kind: str, redis_url: str | None = None, prefix: str = "coursewatch:queues") -> QueueBackend:
    """Build the configured backend (``redis`` or ``memory``)."""
    if kind == "memory":
        return MemoryQueueBackend()
    if kind == "redis":
        if not redis_url:
            raise ValueError("redis_url is required for the redis queue backend")
        return RedisQueueBackend.from_url(redis_url, prefix=prefix)
    raise ValueError(f"Unknown queue backend '{kind}'")
