from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.advertiser import Advertiser
from src.models.offer import Offer
from src.schemas.directory import AdvertiserCreate, AdvertiserUpdate
from src.timeutils import utcnow

_REQUIRED = ("name", "status")


async def list_advertisers(
    session: AsyncSession,
    *,
    search: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Advertiser], int]:
    q = select(Advertiser)
    if status is not None:
        q = q.where(Advertiser.status == status)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.where(or_(func.lower(Advertiser.name).like(term), func.lower(Advertiser.contact_email).like(term)))

    total = (await session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()
    r = await session.execute(
        q.order_by(Advertiser.created_at.desc(), Advertiser.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(r.scalars().all()), int(total or 0)


async def get_advertiser(session: AsyncSession, *, advertiser_id: UUID) -> Advertiser | None:
    return await session.get(Advertiser, advertiser_id)


async def create_advertiser(session: AsyncSession, obj_in: AdvertiserCreate) -> Advertiser:
    now = utcnow()
    advertiser = Advertiser(**obj_in.model_dump(), created_at=now, updated_at=now)
    session.add(advertiser)
    await session.flush()
    return advertiser


async def update_advertiser(session: AsyncSession, advertiser: Advertiser, obj_in: AdvertiserUpdate) -> Advertiser:
    changes = obj_in.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field in _REQUIRED:
            continue
        setattr(advertiser, field, value)
    advertiser.updated_at = utcnow()

    # Offers carry a copy of the advertiser name.
    if "name" in changes:
        await session.execute(
            update(Offer).where(Offer.advertiser_id == advertiser.id).values(advertiser_name=advertiser.name)
        )
    await session.flush()
    return advertiser
