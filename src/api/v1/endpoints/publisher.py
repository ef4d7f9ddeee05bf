from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.offer import list_active_offers
from src.database import get_db
from src.schemas.directory import PublicOffer, PublicOfferListResponse
from src.schemas.submission import SubmissionCreate, SubmissionResponse, TrackedCreative, TrackResponse
from src.services import idempotency
from src.services.errors import IdempotencyConflict
from src.services.intake import find_request_for_tracking, submit_request

logger = logging.getLogger("creative_approval.api.publisher")

router = APIRouter(tags=["publisher"])


@router.post("/submit", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_endpoint(
    payload: SubmissionCreate,
    request: Request,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    session: AsyncSession = Depends(get_db),
):
    request_hash = None
    if idempotency_key:
        request_hash = idempotency.hash_request(request.method, str(request.url), await request.body())
        check = await idempotency.check_idempotency_key(session, key=idempotency_key, request_hash=request_hash)
        if check.outcome == idempotency.CONFLICT:
            raise IdempotencyConflict()
        if check.outcome == idempotency.HIT:
            logger.info("submit_replayed idempotency_key=%s", idempotency_key)
            return JSONResponse(status_code=check.response_status or 201, content=check.response_body)

    outcome = await submit_request(session, payload)
    response = SubmissionResponse(request_id=outcome.request.id, tracking_code=outcome.request.tracking_code)

    if idempotency_key:
        await idempotency.store_idempotency_key(
            session,
            key=idempotency_key,
            request_hash=request_hash,
            response_body=response.model_dump(mode="json"),
            response_status=status.HTTP_201_CREATED,
        )
        await session.commit()

    return response


@router.get("/track", response_model=TrackResponse)
async def track_endpoint(
    code: str | None = Query(None, description="Tracking code"),
    request_id: UUID | None = Query(None, alias="id", description="Request UUID"),
    session: AsyncSession = Depends(get_db),
) -> TrackResponse:
    creative_request, creatives = await find_request_for_tracking(session, request_id=request_id, code=code)
    return TrackResponse(
        id=creative_request.id,
        tracking_code=creative_request.tracking_code,
        offer_name=creative_request.offer_name,
        creative_type=creative_request.creative_type,
        priority=creative_request.priority,
        status=creative_request.status,
        approval_stage=creative_request.approval_stage,
        admin_comments=creative_request.admin_comments,
        advertiser_comments=creative_request.advertiser_comments,
        submitted_at=creative_request.submitted_at,
        updated_at=creative_request.updated_at,
        files=[TrackedCreative.model_validate(c) for c in creatives],
    )


@router.get("/offers", response_model=PublicOfferListResponse)
async def active_offers_endpoint(session: AsyncSession = Depends(get_db)) -> PublicOfferListResponse:
    offers = await list_active_offers(session)
    return PublicOfferListResponse(
        data=[PublicOffer(id=o.id, offer_id=o.everflow_offer_id or str(o.id), offer_name=o.offer_name) for o in offers]
    )
