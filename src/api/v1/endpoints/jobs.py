from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_job_queue, parse_uuid, require_admin
from src.crud.background_job import get_job, list_job_events, list_jobs
from src.database import get_db
from src.models.user import User
from src.schemas.job import (
    JobCancelResponse,
    JobEventListResponse,
    JobEventRead,
    JobListResponse,
    JobRead,
    JobReplayResponse,
    QueueStateResponse,
)
from src.services.audit import record_audit
from src.services.job_queue import JobQueueService
from src.services.system_state import get_queue_pause, resume_job_queue
from src.worker.dispatch import kick_worker

logger = logging.getLogger("creative_approval.api.jobs")

router = APIRouter(prefix="/admin/jobs", tags=["jobs"])

JOB_STATUSES = {"pending", "running", "completed", "failed", "dead", "cancelled"}


@router.get("", response_model=JobListResponse)
async def list_jobs_endpoint(
    status_filter: str | None = Query(None, alias="status", description="Job status"),
    type: str | None = Query(None, description="Job type"),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> JobListResponse:
    if status_filter is not None and status_filter not in JOB_STATUSES:
        raise HTTPException(status_code=422, detail="Invalid status")

    items = await list_jobs(session, status=status_filter, type=type, limit=100)
    return JobListResponse(items=[JobRead.model_validate(i) for i in items])


# Registered before /{job_id} so "queue" is not read as an id.
@router.get("/queue/state", response_model=QueueStateResponse)
async def queue_state_endpoint(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> QueueStateResponse:
    pause = await get_queue_pause(session)
    if pause is None:
        return QueueStateResponse(paused=False)
    return QueueStateResponse(paused=True, reason=pause.get("reason"), at=pause.get("at"))


@router.post("/queue/resume", response_model=QueueStateResponse)
async def resume_queue_endpoint(
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> QueueStateResponse:
    await resume_job_queue(session)
    record_audit(session, action="job_queue.resumed", user_id=admin.id, entity_type="system_state", request=request)
    await session.commit()

    logger.warning("job_queue_resumed admin_id=%s", admin.id)
    kick_worker()
    return QueueStateResponse(paused=False)


@router.get("/{job_id}", response_model=JobRead)
async def get_job_endpoint(
    job_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> JobRead:
    job = await get_job(session, job_id=parse_uuid(job_id, not_found="Job not found"))
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobRead.model_validate(job)


@router.get("/{job_id}/events", response_model=JobEventListResponse)
async def list_job_events_endpoint(
    job_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> JobEventListResponse:
    job_uuid = parse_uuid(job_id, not_found="Job not found")
    if await get_job(session, job_id=job_uuid) is None:
        raise HTTPException(status_code=404, detail="Job not found")
    events = await list_job_events(session, job_id=job_uuid)
    return JobEventListResponse(items=[JobEventRead.model_validate(e) for e in events])


@router.post("/{job_id}/cancel", response_model=JobCancelResponse)
async def cancel_job_endpoint(
    job_id: str,
    request: Request,
    admin: User = Depends(require_admin),
    queue: JobQueueService = Depends(get_job_queue),
    session: AsyncSession = Depends(get_db),
) -> JobCancelResponse:
    outcome = await queue.cancel_job(parse_uuid(job_id, not_found="Job not found"), actor_id=admin.id)
    if not outcome.cancelled:
        return JobCancelResponse(success=False, message=f"Job is already {outcome.job.status}", status=outcome.job.status)

    record_audit(session, action="job.cancelled", user_id=admin.id, entity_type="background_job", entity_id=job_id, request=request)
    await session.commit()
    return JobCancelResponse(success=True, message="Job cancelled", status=outcome.job.status)


@router.post("/{job_id}/retry", response_model=JobRead)
async def retry_job_endpoint(
    job_id: str,
    request: Request,
    admin: User = Depends(require_admin),
    queue: JobQueueService = Depends(get_job_queue),
    session: AsyncSession = Depends(get_db),
) -> JobRead:
    job = await queue.retry_job(parse_uuid(job_id, not_found="Job not found"), actor_id=admin.id)

    record_audit(session, action="job.retried", user_id=admin.id, entity_type="background_job", entity_id=job_id, request=request)
    await session.commit()

    kick_worker()
    return JobRead.model_validate(job)


@router.post("/{job_id}/replay", response_model=JobReplayResponse, status_code=status.HTTP_201_CREATED)
async def replay_job_endpoint(
    job_id: str,
    request: Request,
    admin: User = Depends(require_admin),
    queue: JobQueueService = Depends(get_job_queue),
    session: AsyncSession = Depends(get_db),
) -> JobReplayResponse:
    replay = await queue.replay_job(parse_uuid(job_id, not_found="Job not found"), actor_id=admin.id)

    record_audit(
        session,
        action="job.replayed",
        user_id=admin.id,
        entity_type="background_job",
        entity_id=job_id,
        details={"new_job_id": str(replay.id)},
        request=request,
    )
    await session.commit()

    kick_worker()
    return JobReplayResponse(new_job_id=replay.id)
