from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.deps import get_current_user, get_job_queue, parse_uuid
from src.crud.creative import get_creative, list_external_tasks
from src.database import get_db, get_sessionmaker
from src.models.user import User
from src.schemas.creative import ExternalTaskListResponse, ExternalTaskRead, ProofreadEnqueueResponse
from src.services import job_handlers
from src.services.job_queue import JobQueueService
from src.worker.dispatch import kick_worker

router = APIRouter(prefix="/creatives", tags=["creatives"])


@router.post("/{creative_id}/proofread", response_model=ProofreadEnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def proofread_creative_endpoint(
    creative_id: str,
    user: User = Depends(get_current_user),
    queue: JobQueueService = Depends(get_job_queue),
    session: AsyncSession = Depends(get_db),
) -> ProofreadEnqueueResponse:
    creative = await get_creative(session, creative_id=parse_uuid(creative_id, not_found="Creative not found"))
    if creative is None:
        raise HTTPException(status_code=404, detail="Creative not found")

    job = await queue.enqueue(
        session,
        type=job_handlers.GRAMMAR_CHECK,
        payload={"creative_id": str(creative.id), "url": creative.url, "user_id": str(user.id)},
    )
    await session.commit()

    kick_worker()
    return ProofreadEnqueueResponse(job_id=job.id)


@router.get("/{creative_id}/proofread", response_model=ExternalTaskListResponse)
async def list_proofread_results_endpoint(
    creative_id: str,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> ExternalTaskListResponse:
    creative_uuid = parse_uuid(creative_id, not_found="Creative not found")
    if await get_creative(session, creative_id=creative_uuid) is None:
        raise HTTPException(status_code=404, detail="Creative not found")

    tasks = await list_external_tasks(session, creative_id=creative_uuid)
    # Tasks submitted with async processing finish on the AI service; pick up their results here.
    if any(t.status == "processing" for t in tasks):
        async with job_handlers.grammar_service_factory(session_maker) as service:
            tasks = await service.refresh_processing(tasks)
    return ExternalTaskListResponse(items=[ExternalTaskRead.model_validate(t) for t in tasks])
