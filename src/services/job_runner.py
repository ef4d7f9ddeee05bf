"""Polling worker for the background_jobs table.

A run claims due jobs one at a time and dispatches each to the handler
registered for its type until nothing is due or the time budget is spent.
Handlers receive a JobContext for progress reporting, event logging and
cooperative cancellation checks.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
import time
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.models.background_job import BackgroundJob
from src.services import job_events
from src.services.alerts import send_alert
from src.services.job_queue import CANCELLED, JobQueueService
from src.services.system_state import get_queue_pause
from src.timeutils import ensure_aware, utcnow

logger = logging.getLogger("creative_approval.jobs.worker")


class JobLogAdapter(logging.LoggerAdapter):
    """Prefix every line with the job id so a job's lines can be grepped together."""

    def process(self, msg, kwargs):
        return f"job_id={self.extra['job_id']} {msg}", kwargs


def job_logger(job_id: UUID, job_type: str | None = None) -> JobLogAdapter:
    return JobLogAdapter(logger, {"job_id": str(job_id), "job_type": job_type})


class JobCancelled(Exception):
    """Raised by a handler that noticed its job was cancelled mid-run."""


@dataclass
class JobContext:
    job_id: UUID
    type: str
    payload: dict[str, Any]
    started_at: datetime
    session_maker: async_sessionmaker[AsyncSession]
    queue: JobQueueService
    log: JobLogAdapter
    total: int = 0
    long_running_after: timedelta = field(default_factory=lambda: timedelta(minutes=settings.job_long_running_minutes))
    _long_running_alerted: bool = False

    async def report_progress(self, current: int, total: int, *, stage: str | None = None) -> None:
        self.total = total
        await self.queue.update_progress(self.job_id, current=current, total=total, stage=stage)

        if not self._long_running_alerted and utcnow() - self.started_at > self.long_running_after:
            self._long_running_alerted = True
            self.log.warning("job_long_running progress=%s/%s", current, total)
            await send_alert(
                f"Job {self.job_id} ({self.type}) has been running for more than "
                f"{int(self.long_running_after.total_seconds() // 60)} minutes ({current}/{total})"
            )

    async def emit(self, type: str, message: str | None = None, data: dict[str, Any] | None = None) -> None:
        await job_events.log_job_event(self.session_maker, job_id=self.job_id, type=type, message=message, data=data)

    async def ensure_not_cancelled(self) -> None:
        if await self.queue.get_status(self.job_id) == CANCELLED:
            raise JobCancelled(f"Job {self.job_id} was cancelled")


JobHandler = Callable[[JobContext], Awaitable[dict[str, Any] | None]]


@dataclass(frozen=True)
class WorkerRunResult:
    processed: int
    paused: bool = False
    reason: str | None = None


class JobRunner:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        handlers: Mapping[str, JobHandler],
        queue: JobQueueService | None = None,
        max_seconds: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._handlers = dict(handlers)
        self._queue = queue or JobQueueService(session_maker)
        self._max_seconds = settings.job_worker_max_seconds if max_seconds is None else max_seconds

    async def _paused_reason(self) -> tuple[bool, str | None]:
        async with self._session_maker() as session:
            pause = await get_queue_pause(session)
        if pause is None:
            return False, None
        return True, pause.get("reason")

    async def run(self) -> WorkerRunResult:
        paused, reason = await self._paused_reason()
        if paused:
            logger.warning("worker_skipped reason=queue_paused detail=%s", reason)
            return WorkerRunResult(processed=0, paused=True, reason=reason)

        started = time.monotonic()
        processed = 0

        while time.monotonic() - started < self._max_seconds:
            job = await self._queue.claim_next_job()
            if job is None:
                break
            processed += 1
            await self._run_one(job)

            paused, reason = await self._paused_reason()
            if paused:
                logger.warning("worker_stopped reason=queue_paused detail=%s", reason)
                return WorkerRunResult(processed=processed, paused=True, reason=reason)

        logger.info("worker_run_completed processed=%s elapsed_s=%.2f", processed, time.monotonic() - started)
        return WorkerRunResult(processed=processed)

    async def _run_one(self, job: BackgroundJob) -> None:
        log = job_logger(job.id, job.type)

        if await self._queue.get_status(job.id) == CANCELLED:
            log.info("job_skipped reason=cancelled")
            await job_events.log_job_event(
                self._session_maker, job_id=job.id, type=job_events.CANCELLED, message="Job was cancelled before processing"
            )
            return

        handler = self._handlers.get(job.type)
        if handler is None:
            log.error("job_unknown_type type=%s", job.type)
            await self._queue.mark_failed(job.id, message=f"Unknown job type: {job.type}")
            return

        await job_events.log_job_event(
            self._session_maker,
            job_id=job.id,
            type=job_events.STARTED,
            message=f"Started {job.type}",
            data={"attempt": job.attempt, "retryCount": job.retry_count},
        )

        ctx = JobContext(
            job_id=job.id,
            type=job.type,
            payload=dict(job.payload or {}),
            started_at=ensure_aware(job.started_at) or utcnow(),
            session_maker=self._session_maker,
            queue=self._queue,
            log=log,
            total=job.total or 0,
        )

        try:
            result = await handler(ctx)
        except JobCancelled:
            log.info("job_stopped reason=cancelled")
            await ctx.emit(job_events.CANCELLED, "Job stopped after cancellation")
            return
        except Exception as exc:
            log.exception("job_handler_failed error=%s", exc)
            await self._queue.fail_job(job.id, exc)
            return

        result = result or {}
        total = result.get("total")
        await self._queue.complete_job(job.id, result=result, total=total if isinstance(total, int) else ctx.total)
