from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.publisher import Publisher
from src.schemas.directory import PublisherCreate, PublisherUpdate
from src.timeutils import utcnow

_REQUIRED = ("name", "status")


async def list_publishers(
    session: AsyncSession,
    *,
    search: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Publisher], int]:
    q = select(Publisher)
    if status is not None:
        q = q.where(Publisher.status == status)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.where(or_(func.lower(Publisher.name).like(term), func.lower(Publisher.contact_email).like(term)))

    total = (await session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()
    r = await session.execute(
        q.order_by(Publisher.created_at.desc(), Publisher.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(r.scalars().all()), int(total or 0)


async def get_publisher(session: AsyncSession, *, publisher_id: UUID) -> Publisher | None:
    return await session.get(Publisher, publisher_id)


async def create_publisher(session: AsyncSession, obj_in: PublisherCreate) -> Publisher:
    now = utcnow()
    publisher = Publisher(**obj_in.model_dump(), created_at=now, updated_at=now)
    session.add(publisher)
    await session.flush()
    return publisher


async def update_publisher(session: AsyncSession, publisher: Publisher, obj_in: PublisherUpdate) -> Publisher:
    for field, value in obj_in.model_dump(exclude_unset=True).items():
        if value is None and field in _REQUIRED:
            continue
        setattr(publisher, field, value)
    publisher.updated_at = utcnow()
    await session.flush()
    return publisher
