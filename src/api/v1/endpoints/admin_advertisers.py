from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import parse_uuid, require_admin
from src.crud.advertiser import create_advertiser, get_advertiser, list_advertisers, update_advertiser
from src.database import get_db
from src.models.advertiser import Advertiser
from src.models.user import User
from src.schemas.creative_request import PageMeta
from src.schemas.directory import (
    AdvertiserCreate,
    AdvertiserListResponse,
    AdvertiserRead,
    AdvertiserUpdate,
    DirectoryStatus,
)
from src.services.audit import record_audit
from src.timeutils import utcnow

logger = logging.getLogger("creative_approval.api.advertisers")

router = APIRouter(prefix="/admin/advertisers", tags=["admin-advertisers"])


async def _load(session: AsyncSession, advertiser_id: str) -> Advertiser:
    advertiser_uuid = parse_uuid(advertiser_id, not_found="Advertiser not found")
    advertiser = await get_advertiser(session, advertiser_id=advertiser_uuid)
    if advertiser is None:
        raise HTTPException(status_code=404, detail="Advertiser not found")
    return advertiser


@router.get("", response_model=AdvertiserListResponse)
async def list_advertisers_endpoint(
    search: str | None = Query(None, description="Name or contact email"),
    status_filter: DirectoryStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AdvertiserListResponse:
    items, total = await list_advertisers(session, search=search, status=status_filter, page=page, limit=limit)
    return AdvertiserListResponse(
        data=[AdvertiserRead.model_validate(i) for i in items],
        meta=PageMeta(page=page, limit=limit, total=total),
    )


@router.post("", response_model=AdvertiserRead, status_code=status.HTTP_201_CREATED)
async def create_advertiser_endpoint(
    payload: AdvertiserCreate,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AdvertiserRead:
    if payload.everflow_advertiser_id:
        r = await session.execute(
            select(Advertiser.id).where(Advertiser.everflow_advertiser_id == payload.everflow_advertiser_id)
        )
        if r.scalar_one_or_none() is not None:
            raise HTTPException(status_code=409, detail="An advertiser with this Everflow id already exists")

    advertiser = await create_advertiser(session, payload)
    record_audit(
        session,
        action="advertiser.created",
        user_id=admin.id,
        entity_type="advertiser",
        entity_id=advertiser.id,
        request=request,
    )
    await session.commit()

    logger.info("advertiser_created advertiser_id=%s user_id=%s", advertiser.id, admin.id)
    return AdvertiserRead.model_validate(advertiser)


@router.get("/{advertiser_id}", response_model=AdvertiserRead)
async def get_advertiser_endpoint(
    advertiser_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AdvertiserRead:
    return AdvertiserRead.model_validate(await _load(session, advertiser_id))


@router.put("/{advertiser_id}", response_model=AdvertiserRead)
async def update_advertiser_endpoint(
    advertiser_id: str,
    payload: AdvertiserUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AdvertiserRead:
    advertiser = await update_advertiser(session, await _load(session, advertiser_id), payload)
    record_audit(
        session,
        action="advertiser.updated",
        user_id=admin.id,
        entity_type="advertiser",
        entity_id=advertiser.id,
        details={"fields": sorted(payload.model_dump(exclude_unset=True))},
        request=request,
    )
    await session.commit()
    return AdvertiserRead.model_validate(advertiser)


@router.delete("/{advertiser_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_advertiser_endpoint(
    advertiser_id: str,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> Response:
    advertiser = await _load(session, advertiser_id)
    advertiser.status = "inactive"
    advertiser.updated_at = utcnow()
    record_audit(
        session,
        action="advertiser.deactivated",
        user_id=admin.id,
        entity_type="advertiser",
        entity_id=advertiser.id,
        request=request,
    )
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
