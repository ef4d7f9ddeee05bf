from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.background_job import BackgroundJob
from src.models.background_job_event import BackgroundJobEvent

ACTIVE_STATUSES = ("pending", "running")


async def list_jobs(
    session: AsyncSession,
    *,
    status: str | None = None,
    type: str | None = None,
    limit: int = 100,
) -> list[BackgroundJob]:
    q = select(BackgroundJob)
    if status is not None:
        q = q.where(BackgroundJob.status == status)
    if type is not None:
        q = q.where(BackgroundJob.type == type)
    q = q.order_by(BackgroundJob.created_at.desc(), BackgroundJob.id.desc()).limit(max(1, min(limit, 100)))
    r = await session.execute(q)
    return list(r.scalars().all())


async def get_job(session: AsyncSession, *, job_id: UUID) -> BackgroundJob | None:
    return await session.get(BackgroundJob, job_id)


async def list_job_events(session: AsyncSession, *, job_id: UUID, limit: int = 500) -> list[BackgroundJobEvent]:
    r = await session.execute(
        select(BackgroundJobEvent)
        .where(BackgroundJobEvent.job_id == job_id)
        .order_by(BackgroundJobEvent.created_at.asc(), BackgroundJobEvent.id.asc())
        .limit(limit)
    )
    return list(r.scalars().all())


async def find_active_job(session: AsyncSession, *, type: str, user_id: UUID | None = None) -> BackgroundJob | None:
    """Newest pending/running job of a type, optionally only those started by a user."""

    q = (
        select(BackgroundJob)
        .where(BackgroundJob.type == type)
        .where(BackgroundJob.status.in_(ACTIVE_STATUSES))
    )
    if user_id is not None:
        q = q.where(BackgroundJob.payload["user_id"].as_string() == str(user_id))
    r = await session.execute(q.order_by(BackgroundJob.created_at.desc()).limit(1))
    return r.scalar_one_or_none()


async def active_job_creative_ids(session: AsyncSession, *, type: str) -> set[str]:
    """creative_id values referenced by pending/running jobs of a type."""

    r = await session.execute(
        select(BackgroundJob.payload)
        .where(BackgroundJob.type == type)
        .where(BackgroundJob.status.in_(ACTIVE_STATUSES))
    )
    ids: set[str] = set()
    for payload in r.scalars().all():
        creative_id = (payload or {}).get("creative_id")
        if creative_id:
            ids.add(str(creative_id))
    return ids
