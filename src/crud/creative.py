from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.creative import Creative
from src.models.external_task import ExternalTask


async def get_creative(session: AsyncSession, *, creative_id: UUID) -> Creative | None:
    return await session.get(Creative, creative_id)


async def list_external_tasks(session: AsyncSession, *, creative_id: UUID, source: str | None = None) -> list[ExternalTask]:
    q = select(ExternalTask).where(ExternalTask.creative_id == creative_id)
    if source is not None:
        q = q.where(ExternalTask.source == source)
    r = await session.execute(q.order_by(ExternalTask.created_at.desc()))
    return list(r.scalars().all())


async def list_pending_creatives(session: AsyncSession, *, created_after: datetime, limit: int = 100) -> list[Creative]:
    r = await session.execute(
        select(Creative)
        .where(Creative.status == "pending")
        .where(Creative.created_at >= created_after)
        .order_by(Creative.created_at.asc())
        .limit(limit)
    )
    return list(r.scalars().all())
