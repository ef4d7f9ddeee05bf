from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import parse_uuid, require_admin
from src.crud.advertiser import get_advertiser
from src.crud.offer import create_offer, get_offer, get_offer_by_everflow_id, list_offers, update_offer
from src.database import get_db
from src.models.advertiser import Advertiser
from src.models.offer import Offer
from src.models.user import User
from src.schemas.creative_request import PageMeta
from src.schemas.directory import OfferCreate, OfferListResponse, OfferRead, OfferStatus, OfferUpdate
from src.services.audit import record_audit
from src.timeutils import utcnow

logger = logging.getLogger("creative_approval.api.offers")

router = APIRouter(prefix="/admin/offers", tags=["admin-offers"])


async def _load(session: AsyncSession, offer_id: str) -> Offer:
    offer = await get_offer(session, offer_id=parse_uuid(offer_id, not_found="Offer not found"))
    if offer is None:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


async def _advertiser(session: AsyncSession, advertiser_id) -> Advertiser:
    advertiser = await get_advertiser(session, advertiser_id=advertiser_id)
    if advertiser is None:
        raise HTTPException(status_code=404, detail="Advertiser not found")
    return advertiser


@router.get("", response_model=OfferListResponse)
async def list_offers_endpoint(
    search: str | None = Query(None, description="Offer name"),
    status_filter: OfferStatus = Query("Active", alias="status"),
    advertiser_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> OfferListResponse:
    advertiser_uuid = parse_uuid(advertiser_id, not_found="Advertiser not found") if advertiser_id else None
    items, total = await list_offers(
        session, status=status_filter, search=search, advertiser_id=advertiser_uuid, page=page, limit=limit
    )
    return OfferListResponse(
        data=[OfferRead.model_validate(i) for i in items],
        meta=PageMeta(page=page, limit=limit, total=total),
    )


@router.post("", response_model=OfferRead, status_code=status.HTTP_201_CREATED)
async def create_offer_endpoint(
    payload: OfferCreate,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> OfferRead:
    advertiser = await _advertiser(session, payload.advertiser_id)
    if payload.everflow_offer_id and await get_offer_by_everflow_id(
        session, everflow_offer_id=payload.everflow_offer_id
    ):
        raise HTTPException(status_code=409, detail="An offer with this Everflow id already exists")

    offer = await create_offer(session, payload, advertiser=advertiser, created_by=str(admin.id))
    record_audit(
        session,
        action="offer.created",
        user_id=admin.id,
        entity_type="offer",
        entity_id=offer.id,
        request=request,
    )
    await session.commit()

    logger.info("offer_created offer_id=%s advertiser_id=%s user_id=%s", offer.id, advertiser.id, admin.id)
    return OfferRead.model_validate(offer)


@router.get("/{offer_id}", response_model=OfferRead)
async def get_offer_endpoint(
    offer_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> OfferRead:
    return OfferRead.model_validate(await _load(session, offer_id))


@router.put("/{offer_id}", response_model=OfferRead)
async def update_offer_endpoint(
    offer_id: str,
    payload: OfferUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> OfferRead:
    offer = await _load(session, offer_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"advertiser_id"})
    advertiser = await _advertiser(session, payload.advertiser_id) if payload.advertiser_id else None

    offer = await update_offer(session, offer, changes, advertiser=advertiser, updated_by=str(admin.id))
    record_audit(
        session,
        action="offer.updated",
        user_id=admin.id,
        entity_type="offer",
        entity_id=offer.id,
        details={"fields": sorted(payload.model_dump(exclude_unset=True))},
        request=request,
    )
    await session.commit()
    return OfferRead.model_validate(offer)


@router.delete("/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_offer_endpoint(
    offer_id: str,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> Response:
    offer = await _load(session, offer_id)
    offer.status = "Inactive"
    offer.updated_by = str(admin.id)
    offer.updated_at = utcnow()
    record_audit(
        session,
        action="offer.deactivated",
        user_id=admin.id,
        entity_type="offer",
        entity_id=offer.id,
        request=request,
    )
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
