from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.creative import Creative
from src.models.creative_request import CreativeRequest
from src.models.request_status_history import RequestStatusHistory

SORT_FIELDS = {
    "submitted_at": CreativeRequest.submitted_at,
    "updated_at": CreativeRequest.updated_at,
    "priority": CreativeRequest.priority,
    "offer_name": CreativeRequest.offer_name,
}


async def list_requests(
    session: AsyncSession,
    *,
    statuses: list[str] | None = None,
    approval_stage: str | None = None,
    advertiser_id: UUID | None = None,
    search: str | None = None,
    sort_by: str = "submitted_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> tuple[list[CreativeRequest], int]:
    page = max(1, page)
    limit = max(1, min(limit, 100))

    q = select(CreativeRequest)
    if statuses:
        q = q.where(CreativeRequest.status.in_(statuses))
    if approval_stage is not None:
        q = q.where(CreativeRequest.approval_stage == approval_stage)
    if advertiser_id is not None:
        q = q.where(CreativeRequest.advertiser_id == advertiser_id)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.where(
            or_(
                func.lower(CreativeRequest.offer_name).like(term),
                func.lower(CreativeRequest.publisher_name).like(term),
                func.lower(CreativeRequest.email).like(term),
                func.lower(CreativeRequest.tracking_code).like(term),
            )
        )

    total = (await session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()

    sort_col = SORT_FIELDS.get(sort_by, CreativeRequest.submitted_at)
    if sort_order == "asc":
        q = q.order_by(sort_col.asc(), CreativeRequest.id.asc())
    else:
        q = q.order_by(sort_col.desc(), CreativeRequest.id.desc())

    r = await session.execute(q.offset((page - 1) * limit).limit(limit))
    return list(r.scalars().all()), int(total or 0)


async def get_request(
    session: AsyncSession, *, request_id: UUID, advertiser_id: UUID | None = None
) -> CreativeRequest | None:
    q = select(CreativeRequest).where(CreativeRequest.id == request_id)
    if advertiser_id is not None:
        q = q.where(CreativeRequest.advertiser_id == advertiser_id)
    r = await session.execute(q)
    return r.scalar_one_or_none()


async def list_request_creatives(session: AsyncSession, *, request_id: UUID) -> list[Creative]:
    r = await session.execute(
        select(Creative).where(Creative.request_id == request_id).order_by(Creative.created_at.asc())
    )
    return list(r.scalars().all())


async def list_status_history(session: AsyncSession, *, request_id: UUID) -> list[RequestStatusHistory]:
    r = await session.execute(
        select(RequestStatusHistory)
        .where(RequestStatusHistory.request_id == request_id)
        .order_by(RequestStatusHistory.created_at.asc())
    )
    return list(r.scalars().all())
