from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.advertiser import Advertiser
from src.models.offer import Offer
from src.schemas.directory import OfferCreate
from src.timeutils import utcnow

_REQUIRED = ("offer_name", "status", "visibility")


async def list_offers(
    session: AsyncSession,
    *,
    status: str | None = "Active",
    search: str | None = None,
    advertiser_id: UUID | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Offer], int]:
    q = select(Offer)
    if status is not None:
        q = q.where(Offer.status == status)
    if advertiser_id is not None:
        q = q.where(Offer.advertiser_id == advertiser_id)
    if search:
        q = q.where(func.lower(Offer.offer_name).like(f"%{search.strip().lower()}%"))

    total = (await session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()
    r = await session.execute(
        q.order_by(Offer.created_at.desc(), Offer.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(r.scalars().all()), int(total or 0)


async def list_active_offers(session: AsyncSession) -> list[Offer]:
    r = await session.execute(select(Offer).where(Offer.status == "Active").order_by(Offer.offer_name.asc()))
    return list(r.scalars().all())


async def get_offer(session: AsyncSession, *, offer_id: UUID) -> Offer | None:
    return await session.get(Offer, offer_id)


async def get_offer_by_everflow_id(session: AsyncSession, *, everflow_offer_id: str) -> Offer | None:
    r = await session.execute(select(Offer).where(Offer.everflow_offer_id == everflow_offer_id))
    return r.scalar_one_or_none()


async def create_offer(
    session: AsyncSession, obj_in: OfferCreate, *, advertiser: Advertiser, created_by: str | None = None
) -> Offer:
    """Insert an offer entered by hand; synced offers go through the Everflow sync instead."""

    now = utcnow()
    offer = Offer(
        offer_name=obj_in.offer_name,
        advertiser_id=advertiser.id,
        advertiser_name=advertiser.name,
        created_method="Manually",
        status=obj_in.status,
        visibility=obj_in.visibility,
        everflow_offer_id=obj_in.everflow_offer_id,
        everflow_advertiser_id=advertiser.everflow_advertiser_id,
        created_by=created_by,
        updated_by=created_by,
        created_at=now,
        updated_at=now,
    )
    session.add(offer)
    await session.flush()
    return offer


async def update_offer(
    session: AsyncSession,
    offer: Offer,
    changes: dict,
    *,
    advertiser: Advertiser | None = None,
    updated_by: str | None = None,
) -> Offer:
    for field, value in changes.items():
        if value is None and field in _REQUIRED:
            continue
        setattr(offer, field, value)
    if advertiser is not None:
        offer.advertiser_id = advertiser.id
        offer.advertiser_name = advertiser.name
        offer.everflow_advertiser_id = advertiser.everflow_advertiser_id
    offer.updated_by = updated_by
    offer.updated_at = utcnow()
    await session.flush()
    return offer
