from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_job_queue, parse_uuid, require_admin
from src.crud.background_job import find_active_job, get_job
from src.database import get_db
from src.models.user import User
from src.schemas.everflow import (
    ActiveJobResponse,
    EverflowConnectionResponse,
    EverflowSyncRequest,
    EverflowSyncResponse,
    SyncStatusResponse,
)
from src.schemas.job import JobCancelResponse
from src.services.audit import record_audit
from src.services import job_handlers
from src.services.job_handlers import EVERFLOW_ADVERTISER_SYNC, EVERFLOW_OFFER_SYNC
from src.services.job_queue import JobQueueService
from src.worker.dispatch import kick_worker

logger = logging.getLogger("creative_approval.api.everflow")

router = APIRouter(prefix="/admin/everflow", tags=["everflow"])

SYNC_JOB_TYPES = {EVERFLOW_OFFER_SYNC, EVERFLOW_ADVERTISER_SYNC}


async def _enqueue_sync(
    *,
    job_type: str,
    payload: EverflowSyncRequest | None,
    admin: User,
    request: Request,
    queue: JobQueueService,
    session: AsyncSession,
) -> EverflowSyncResponse:
    body = payload or EverflowSyncRequest()
    job = await queue.enqueue(
        session,
        type=job_type,
        payload={
            "user_id": str(admin.id),
            "conflict_resolution": body.conflict_resolution,
            "filters": body.filters.model_dump(exclude_none=True),
        },
    )
    record_audit(session, action=f"{job_type}.started", user_id=admin.id, entity_type="background_job", entity_id=job.id, request=request)
    await session.commit()

    logger.info("everflow_sync_enqueued job_id=%s type=%s user_id=%s", job.id, job_type, admin.id)
    kick_worker()
    return EverflowSyncResponse(job_id=job.id, status=job.status)


@router.post("/sync", response_model=EverflowSyncResponse)
async def sync_offers_endpoint(
    request: Request,
    payload: EverflowSyncRequest | None = None,
    admin: User = Depends(require_admin),
    queue: JobQueueService = Depends(get_job_queue),
    session: AsyncSession = Depends(get_db),
) -> EverflowSyncResponse:
    return await _enqueue_sync(
        job_type=EVERFLOW_OFFER_SYNC, payload=payload, admin=admin, request=request, queue=queue, session=session
    )


@router.post("/advertisers/sync", response_model=EverflowSyncResponse)
async def sync_advertisers_endpoint(
    request: Request,
    payload: EverflowSyncRequest | None = None,
    admin: User = Depends(require_admin),
    queue: JobQueueService = Depends(get_job_queue),
    session: AsyncSession = Depends(get_db),
) -> EverflowSyncResponse:
    return await _enqueue_sync(
        job_type=EVERFLOW_ADVERTISER_SYNC, payload=payload, admin=admin, request=request, queue=queue, session=session
    )


@router.get("/active-job", response_model=ActiveJobResponse)
async def active_job_endpoint(
    type: str = Query(EVERFLOW_OFFER_SYNC, description="everflow_sync | everflow_advertiser_sync"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> ActiveJobResponse:
    if type not in SYNC_JOB_TYPES:
        raise HTTPException(status_code=422, detail="Invalid type")

    job = await find_active_job(session, type=type, user_id=admin.id)
    if job is None:
        return ActiveJobResponse(active=False)
    return ActiveJobResponse(active=True, job_id=job.id, status=job.status, progress=job.progress, total=job.total)


@router.get("/sync-status/{job_id}", response_model=SyncStatusResponse)
async def sync_status_endpoint(
    job_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> SyncStatusResponse:
    job = await get_job(session, job_id=parse_uuid(job_id, not_found="Job not found"))
    if job is None or job.type not in SYNC_JOB_TYPES:
        raise HTTPException(status_code=404, detail="Job not found")

    return SyncStatusResponse(
        job_id=job.id,
        type=job.type,
        status=job.status,
        progress=job.progress,
        total=job.total,
        error=job.error,
        error_type=job.error_type,
        result=job.result,
        finished_at=job.finished_at,
        attempt=job.attempt,
        max_attempts=job.max_attempts,
        next_run_at=job.next_run_at,
    )


@router.post("/cancel/{job_id}", response_model=JobCancelResponse)
async def cancel_sync_endpoint(
    job_id: str,
    admin: User = Depends(require_admin),
    queue: JobQueueService = Depends(get_job_queue),
) -> JobCancelResponse:
    outcome = await queue.cancel_job(
        parse_uuid(job_id, not_found="Job not found"), reason="Cancelled by user", actor_id=admin.id
    )
    if not outcome.cancelled:
        return JobCancelResponse(success=False, message=f"Job is already {outcome.job.status}", status=outcome.job.status)
    return JobCancelResponse(success=True, message="Sync cancelled", status=outcome.job.status)


@router.post("/test-connection", response_model=EverflowConnectionResponse)
async def test_connection_endpoint(admin: User = Depends(require_admin)) -> EverflowConnectionResponse:
    async with job_handlers.everflow_client_factory() as client:
        if not client.configured:
            return EverflowConnectionResponse(
                success=False,
                message="API key not configured. Please set EVERFLOW_API_KEY in your environment variables.",
                error="API key missing",
            )
        connected = await client.test_connection()

    logger.info("everflow_connection_tested user_id=%s connected=%s", admin.id, connected)
    if not connected:
        return EverflowConnectionResponse(
            success=False,
            message="Connection failed. Please check your API credentials and endpoint.",
            error="Connection test returned false",
        )
    return EverflowConnectionResponse(success=True, message="Connection successful")
