"""Periodic maintenance work.

Each function owns its transactions and is called both by the cron endpoints
and by the Celery beat tasks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.crud.background_job import active_job_creative_ids
from src.crud.creative import list_pending_creatives
from src.services.alerts import send_alert
from src.services.grammar import GrammarService
from src.services.idempotency import cleanup_expired_keys
from src.services.job_handlers import CREATIVE_SCAN, default_handlers
from src.services.job_queue import JobQueueService
from src.services.job_runner import JobRunner, WorkerRunResult
from src.services.ops_metrics import last_completed_at
from src.services.workflow import RequestWorkflowService
from src.timeutils import utcnow
from src.worker.dispatch import kick_worker

logger = logging.getLogger("creative_approval.scheduled")

DISCOVERY_BATCH_SIZE = 100
DISCOVERY_WINDOW_HOURS = 24


@dataclass(frozen=True)
class DiscoveryResult:
    discovered: int
    job_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True)
class HealthCheckResult:
    healthy: bool
    last_completed_at: datetime | None
    alerted: bool


async def process_jobs(session_maker: async_sessionmaker[AsyncSession]) -> WorkerRunResult:
    return await JobRunner(session_maker, handlers=default_handlers()).run()


async def discover_pending_creatives(
    session_maker: async_sessionmaker[AsyncSession], *, queue: JobQueueService | None = None
) -> DiscoveryResult:
    """Enqueue a scan for recent pending creatives that have no scan job in flight."""

    queue = queue or JobQueueService(session_maker)
    created_after = utcnow() - timedelta(hours=DISCOVERY_WINDOW_HOURS)

    async with session_maker() as session:
        async with session.begin():
            creatives = await list_pending_creatives(session, created_after=created_after, limit=DISCOVERY_BATCH_SIZE)
            in_flight = await active_job_creative_ids(session, type=CREATIVE_SCAN)
            job_ids: list[UUID] = []
            for creative in creatives:
                if str(creative.id) in in_flight:
                    continue
                job = await queue.enqueue(
                    session,
                    type=CREATIVE_SCAN,
                    payload={"creative_id": str(creative.id), "url": creative.url},
                )
                job_ids.append(job.id)

    logger.info("creatives_discovered pending=%s enqueued=%s", len(creatives), len(job_ids))
    if job_ids:
        kick_worker()
    return DiscoveryResult(discovered=len(creatives), job_ids=job_ids)


async def auto_transition_requests(session_maker: async_sessionmaker[AsyncSession]) -> list[UUID]:
    async with session_maker() as session:
        return await RequestWorkflowService().auto_transition_stale(session)


async def cleanup_idempotency(session_maker: async_sessionmaker[AsyncSession]) -> int:
    async with session_maker() as session:
        return await cleanup_expired_keys(session)


async def job_health_check(session_maker: async_sessionmaker[AsyncSession]) -> HealthCheckResult:
    """Alert when no job has completed inside the health window."""

    window = timedelta(hours=settings.job_health_window_hours)
    async with session_maker() as session:
        last = await last_completed_at(session)

    if last is not None and utcnow() - last < window:
        return HealthCheckResult(healthy=True, last_completed_at=last, alerted=False)

    since = last.isoformat() if last is not None else "never"
    logger.warning("job_health_unhealthy last_completed_at=%s", since)
    alerted = await send_alert(
        f"No background job has completed in the last {settings.job_health_window_hours} hours "
        f"(last completion: {since})"
    )
    return HealthCheckResult(healthy=False, last_completed_at=last, alerted=alerted)


async def warmup_grammar(session_maker: async_sessionmaker[AsyncSession]) -> dict:
    async with GrammarService(session_maker) as service:
        result = await service.warmup()
    logger.info("grammar_warmup success=%s message=%s", result["success"], result["message"])
    return result
