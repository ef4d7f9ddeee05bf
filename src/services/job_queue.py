from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging
import random
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.models.background_job import BackgroundJob
from src.services import job_events
from src.services.alerts import send_alert
from src.services.errors import InvalidTransitionError, NotFoundError, ReplayLimitExceeded
from src.services.job_errors import classify_job_error, retry_delay_minutes
from src.services.system_state import get_queue_pause, pause_job_queue
from src.timeutils import ensure_aware, utcnow

logger = logging.getLogger("creative_approval.jobs")

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
DEAD = "dead"
CANCELLED = "cancelled"

ACTIVE_STATUSES = (PENDING, RUNNING)
RETRYABLE_STATUSES = (FAILED, DEAD, CANCELLED)


@dataclass(frozen=True)
class JobQueueDefaults:
    max_retries: int = 5
    replay_limit: int = 3
    replay_window_minutes: int = 5
    dead_spike_threshold: int = 10
    dead_spike_window_minutes: int = 10

    @classmethod
    def from_settings(cls) -> JobQueueDefaults:
        return cls(
            replay_limit=settings.job_replay_limit,
            replay_window_minutes=settings.job_replay_window_minutes,
            dead_spike_threshold=settings.job_dead_spike_threshold,
            dead_spike_window_minutes=settings.job_dead_spike_window_minutes,
        )


@dataclass(frozen=True)
class CancelOutcome:
    job: BackgroundJob
    cancelled: bool


async def _lock_job(session: AsyncSession, job_id: UUID) -> BackgroundJob | None:
    r = await session.execute(select(BackgroundJob).where(BackgroundJob.id == job_id).with_for_update())
    return r.scalar_one_or_none()


def _duration_ms(job: BackgroundJob, now) -> int | None:
    started = ensure_aware(job.started_at)
    if started is None:
        return None
    return int((now - started).total_seconds() * 1000)


class JobQueueService:
    """State transitions of rows in background_jobs.

    Every transition locks the job row and writes its audit event in the same
    transaction. Alerts are sent only after commit.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        defaults: JobQueueDefaults | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._defaults = defaults or JobQueueDefaults.from_settings()
        self._rng = rng

    @property
    def defaults(self) -> JobQueueDefaults:
        return self._defaults

    async def enqueue(
        self,
        session: AsyncSession,
        *,
        type: str,
        payload: dict[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> BackgroundJob:
        """Stage a pending job on the caller's session. The caller commits."""

        job = BackgroundJob(
            type=type,
            status=PENDING,
            progress=0,
            total=0,
            payload=payload or {},
            max_retries=self._defaults.max_retries if max_retries is None else max_retries,
            created_at=utcnow(),
        )
        session.add(job)
        await session.flush()
        logger.info("job_enqueued job_id=%s type=%s", job.id, type)
        return job

    # Worker-side transitions

    async def claim_next_job(self) -> BackgroundJob | None:
        """Move the oldest due pending job to running.

        SKIP LOCKED lets concurrent workers pass over a row another worker is
        claiming instead of blocking on it.
        """

        async with self._session_maker() as session:
            async with session.begin():
                now = utcnow()
                q = (
                    select(BackgroundJob)
                    .where(BackgroundJob.status == PENDING)
                    .where(or_(BackgroundJob.next_run_at.is_(None), BackgroundJob.next_run_at <= now))
                    .order_by(BackgroundJob.created_at.asc(), BackgroundJob.id.asc())
                    .limit(1)
                    .with_for_update(skip_locked=True)
                )
                job = (await session.execute(q)).scalar_one_or_none()
                if job is None:
                    return None

                job.status = RUNNING
                job.started_at = now
                job.finished_at = None
                job.attempt = (job.attempt or 0) + 1

        logger.info("job_claimed job_id=%s type=%s attempt=%s", job.id, job.type, job.attempt)
        return job

    async def get_status(self, job_id: UUID) -> str | None:
        async with self._session_maker() as session:
            r = await session.execute(select(BackgroundJob.status).where(BackgroundJob.id == job_id))
            return r.scalar_one_or_none()

    async def update_progress(self, job_id: UUID, *, current: int, total: int, stage: str | None = None) -> None:
        async with self._session_maker() as session:
            async with session.begin():
                job = await _lock_job(session, job_id)
                if job is None or job.status != RUNNING:
                    return
                job.progress = current
                job.total = total
                job_events.add_job_event(
                    session,
                    job_id=job_id,
                    type=job_events.PROGRESS,
                    message=stage or f"Processed {current}/{total}",
                    data={"current": current, "total": total, "stage": stage},
                )

    async def complete_job(self, job_id: UUID, *, result: dict[str, Any] | None, total: int | None = None) -> bool:
        """Mark a running job completed. Returns False if it left running meanwhile (e.g. cancelled)."""

        async with self._session_maker() as session:
            async with session.begin():
                job = await _lock_job(session, job_id)
                if job is None or job.status != RUNNING:
                    logger.info("job_completion_ignored job_id=%s status=%s", job_id, job.status if job else None)
                    return False

                now = utcnow()
                final_total = job.total if total is None else total
                job.status = COMPLETED
                job.finished_at = now
                job.duration_ms = _duration_ms(job, now)
                job.progress = final_total
                job.total = final_total
                job.result = result
                job.error = None
                job.error_type = None
                job_events.add_job_event(
                    session,
                    job_id=job_id,
                    type=job_events.COMPLETED,
                    message="Job completed",
                    data={"result": result, "durationMs": job.duration_ms},
                )

        logger.info("job_completed job_id=%s duration_ms=%s", job_id, job.duration_ms)
        return True

    async def mark_failed(self, job_id: UUID, *, message: str, error_type: str = "system") -> None:
        """Terminal failure that is not subject to the retry policy."""

        async with self._session_maker() as session:
            async with session.begin():
                job = await _lock_job(session, job_id)
                if job is None:
                    return
                now = utcnow()
                job.status = FAILED
                job.error = message
                job.error_type = error_type
                job.last_error_at = now
                job.finished_at = now
                job.duration_ms = _duration_ms(job, now)
                job_events.add_job_event(
                    session,
                    job_id=job_id,
                    type=job_events.FAILED,
                    message=message,
                    data={"errorType": error_type, "retryable": False},
                )
        logger.error("job_failed job_id=%s error=%s", job_id, message)

    async def fail_job(self, job_id: UUID, error: BaseException | str) -> str | None:
        """Apply the retry policy to a failed run.

        Retryable errors with budget left go back to pending with an
        exponential next_run_at. Everything else is dead-lettered, after which
        the dead-letter spike check may pause the whole queue.

        Returns the job's resulting status.
        """

        classified = classify_job_error(error)
        final_retry_alert: str | None = None

        async with self._session_maker() as session:
            async with session.begin():
                job = await _lock_job(session, job_id)
                if job is None:
                    return None
                if job.status != RUNNING:
                    logger.info("job_failure_ignored job_id=%s status=%s", job_id, job.status)
                    return job.status

                now = utcnow()
                job.error = classified.message
                job.error_type = classified.type
                job.last_error_at = now

                if classified.retryable and job.retry_count < job.max_retries:
                    delay = retry_delay_minutes(classified.type, job.retry_count, rng=self._rng)
                    retry_number = job.retry_count + 1
                    job.status = PENDING
                    job.retry_count = retry_number
                    job.next_run_at = now + timedelta(minutes=delay)
                    job_events.add_job_event(
                        session,
                        job_id=job_id,
                        type=job_events.RETRY_SCHEDULED,
                        message=f"Retry {retry_number}/{job.max_retries} scheduled in {delay:.1f} minutes",
                        data={
                            "retryCount": retry_number,
                            "maxRetries": job.max_retries,
                            "delayMinutes": round(delay, 2),
                            "nextRunAt": job.next_run_at.isoformat(),
                            "errorType": classified.type,
                            "error": classified.message,
                        },
                    )
                    if retry_number == job.max_retries:
                        final_retry_alert = (
                            f"Job {job.id} ({job.type}) scheduled its final retry "
                            f"({retry_number}/{job.max_retries}): {classified.message}"
                        )
                    logger.warning(
                        "job_retry_scheduled job_id=%s retry=%s/%s error_type=%s delay_minutes=%.2f",
                        job_id,
                        retry_number,
                        job.max_retries,
                        classified.type,
                        delay,
                    )
                else:
                    job.status = DEAD
                    job.dead_lettered_at = now
                    job.finished_at = now
                    job.duration_ms = _duration_ms(job, now)
                    job_events.add_job_event(
                        session,
                        job_id=job_id,
                        type=job_events.FAILED,
                        message=classified.message,
                        data={
                            "errorType": classified.type,
                            "severity": classified.severity,
                            "retryable": classified.retryable,
                            "retryCount": job.retry_count,
                            "deadLetter": True,
                        },
                    )
                    logger.error(
                        "job_dead_lettered job_id=%s error_type=%s retries=%s error=%s",
                        job_id,
                        classified.type,
                        job.retry_count,
                        classified.message,
                    )

                status = job.status

        if final_retry_alert:
            await send_alert(final_retry_alert)
        if status == DEAD:
            await self.check_dead_letter_spike()
        return status

    async def check_dead_letter_spike(self) -> bool:
        """Pause the queue when too many jobs were dead-lettered recently.

        Returns True when this call paused the queue.
        """

        window = timedelta(minutes=self._defaults.dead_spike_window_minutes)
        threshold = self._defaults.dead_spike_threshold
        reason = f"Too many dead jobs (>{threshold}) in last {self._defaults.dead_spike_window_minutes} minutes"

        async with self._session_maker() as session:
            async with session.begin():
                since = utcnow() - window
                r = await session.execute(
                    select(func.count())
                    .select_from(BackgroundJob)
                    .where(BackgroundJob.status == DEAD)
                    .where(BackgroundJob.dead_lettered_at >= since)
                )
                dead_count = int(r.scalar_one() or 0)
                if dead_count < threshold:
                    return False
                if await get_queue_pause(session) is not None:
                    return False
                await pause_job_queue(session, reason=reason)

        logger.critical("job_queue_paused dead_count=%s reason=%s", dead_count, reason)
        await send_alert(f"Job queue paused: {reason} (dead jobs: {dead_count})")
        return True

    # Operator actions

    async def cancel_job(self, job_id: UUID, *, reason: str = "Cancelled by admin from UI", actor_id: UUID | None = None) -> CancelOutcome:
        async with self._session_maker() as session:
            async with session.begin():
                job = await _lock_job(session, job_id)
                if job is None:
                    raise NotFoundError("Job not found")
                if job.status not in ACTIVE_STATUSES:
                    return CancelOutcome(job=job, cancelled=False)

                now = utcnow()
                job.status = CANCELLED
                job.finished_at = now
                job.duration_ms = _duration_ms(job, now)
                job.error = reason
                job_events.add_job_event(
                    session,
                    job_id=job_id,
                    type=job_events.CANCELLED,
                    message=reason,
                    data={"cancelledBy": str(actor_id) if actor_id else None},
                )

        logger.info("job_cancelled job_id=%s actor_id=%s", job_id, actor_id)
        return CancelOutcome(job=job, cancelled=True)

    async def retry_job(self, job_id: UUID, *, actor_id: UUID | None = None) -> BackgroundJob:
        async with self._session_maker() as session:
            async with session.begin():
                job = await _lock_job(session, job_id)
                if job is None:
                    raise NotFoundError("Job not found")
                if job.status not in RETRYABLE_STATUSES:
                    raise InvalidTransitionError(f"Cannot retry a job that is {job.status}")

                previous_status = job.status
                job.status = PENDING
                job.next_run_at = utcnow()
                job.error = None
                job.error_type = None
                job.attempt = 0
                job.retry_count = 0
                job.dead_lettered_at = None
                job.finished_at = None
                job.duration_ms = None
                job_events.add_job_event(
                    session,
                    job_id=job_id,
                    type=job_events.MANUAL_RETRY,
                    message="Job manually retried",
                    data={"previousStatus": previous_status, "retriedBy": str(actor_id) if actor_id else None},
                )

        logger.info("job_manual_retry job_id=%s previous_status=%s", job_id, previous_status)
        return job

    async def replay_job(self, job_id: UUID, *, actor_id: UUID | None = None) -> BackgroundJob:
        """Enqueue a fresh copy of a job and count the replay on the original."""

        window = timedelta(minutes=self._defaults.replay_window_minutes)

        async with self._session_maker() as session:
            async with session.begin():
                original = await _lock_job(session, job_id)
                if original is None:
                    raise NotFoundError("Job not found")

                now = utcnow()
                last_replay_at = ensure_aware(original.last_replay_at)
                if (
                    original.replay_count >= self._defaults.replay_limit
                    and last_replay_at is not None
                    and now - last_replay_at < window
                ):
                    raise ReplayLimitExceeded("Replay limit exceeded. Please wait before replaying this job again.")

                payload = dict(original.payload or {})
                payload.update(
                    {
                        "user_id": str(actor_id) if actor_id else payload.get("user_id"),
                        "replay_from_job_id": str(original.id),
                        "replayed_at": now.isoformat(),
                        "replayed_by": str(actor_id) if actor_id else None,
                    }
                )
                replay = await self.enqueue(session, type=original.type, payload=payload, max_retries=original.max_retries)

                original.replay_count = (original.replay_count or 0) + 1
                original.last_replay_at = now

        logger.info("job_replayed job_id=%s new_job_id=%s replay_count=%s", job_id, replay.id, original.replay_count)
        return replay
