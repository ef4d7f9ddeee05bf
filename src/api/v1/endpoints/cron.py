from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.deps import get_job_queue, require_cron_or_admin
from src.database import get_sessionmaker
from src.schemas.cron import (
    AutoTransitionResponse,
    CleanupResponse,
    DiscoverCreativesResponse,
    HealthCheckResponse,
    ProcessJobsResponse,
    WarmupResponse,
)
from src.services import scheduled
from src.services.job_queue import JobQueueService

# Schedulers call these with GET; POST is accepted for manual runs.
router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron_or_admin)])


@router.api_route("/process-jobs", methods=["GET", "POST"], response_model=ProcessJobsResponse)
async def process_jobs_endpoint(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> ProcessJobsResponse:
    result = await scheduled.process_jobs(session_maker)
    if result.paused:
        return ProcessJobsResponse(
            message="Job queue paused", processed=result.processed, paused=True, reason=result.reason
        )
    return ProcessJobsResponse(message="Worker run complete", processed=result.processed)


@router.api_route("/discover-pending-creatives", methods=["GET", "POST"], response_model=DiscoverCreativesResponse)
async def discover_pending_creatives_endpoint(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    queue: JobQueueService = Depends(get_job_queue),
) -> DiscoverCreativesResponse:
    result = await scheduled.discover_pending_creatives(session_maker, queue=queue)
    return DiscoverCreativesResponse(discovered=result.discovered, enqueued=len(result.job_ids), job_ids=result.job_ids)


@router.api_route("/auto-transition-requests", methods=["GET", "POST"], response_model=AutoTransitionResponse)
async def auto_transition_requests_endpoint(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> AutoTransitionResponse:
    ids = await scheduled.auto_transition_requests(session_maker)
    return AutoTransitionResponse(count=len(ids), ids=ids)


@router.api_route("/cleanup-idempotency", methods=["GET", "POST"], response_model=CleanupResponse)
async def cleanup_idempotency_endpoint(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> CleanupResponse:
    return CleanupResponse(deleted=await scheduled.cleanup_idempotency(session_maker))


@router.api_route("/health-check", methods=["GET", "POST"], response_model=HealthCheckResponse)
async def job_health_check_endpoint(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> HealthCheckResponse:
    result = await scheduled.job_health_check(session_maker)
    return HealthCheckResponse(healthy=result.healthy, last_completed_at=result.last_completed_at, alerted=result.alerted)


@router.api_route("/warmup-grammar", methods=["GET", "POST"], response_model=WarmupResponse)
async def warmup_grammar_endpoint(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> WarmupResponse:
    return WarmupResponse(**await scheduled.warmup_grammar(session_maker))
