from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import parse_uuid, require_admin
from src.crud.publisher import create_publisher, get_publisher, list_publishers, update_publisher
from src.database import get_db
from src.models.publisher import Publisher
from src.models.user import User
from src.schemas.creative_request import PageMeta
from src.schemas.directory import (
    DirectoryStatus,
    PublisherCreate,
    PublisherListResponse,
    PublisherRead,
    PublisherUpdate,
)
from src.services.audit import record_audit
from src.services.errors import ValidationFailed
from src.services.notifications import is_valid_telegram_id
from src.timeutils import utcnow

router = APIRouter(prefix="/admin/publishers", tags=["admin-publishers"])


async def _load(session: AsyncSession, publisher_id: str) -> Publisher:
    publisher = await get_publisher(session, publisher_id=parse_uuid(publisher_id, not_found="Publisher not found"))
    if publisher is None:
        raise HTTPException(status_code=404, detail="Publisher not found")
    return publisher


def _check_telegram_id(value: str | None) -> None:
    if value and not is_valid_telegram_id(value):
        raise ValidationFailed("Invalid Telegram ID")


@router.get("", response_model=PublisherListResponse)
async def list_publishers_endpoint(
    search: str | None = Query(None, description="Name or contact email"),
    status_filter: DirectoryStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> PublisherListResponse:
    items, total = await list_publishers(session, search=search, status=status_filter, page=page, limit=limit)
    return PublisherListResponse(
        data=[PublisherRead.model_validate(i) for i in items],
        meta=PageMeta(page=page, limit=limit, total=total),
    )


@router.post("", response_model=PublisherRead, status_code=status.HTTP_201_CREATED)
async def create_publisher_endpoint(
    payload: PublisherCreate,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> PublisherRead:
    _check_telegram_id(payload.telegram_id)
    publisher = await create_publisher(session, payload)
    record_audit(
        session,
        action="publisher.created",
        user_id=admin.id,
        entity_type="publisher",
        entity_id=publisher.id,
        request=request,
    )
    await session.commit()
    return PublisherRead.model_validate(publisher)


@router.get("/{publisher_id}", response_model=PublisherRead)
async def get_publisher_endpoint(
    publisher_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> PublisherRead:
    return PublisherRead.model_validate(await _load(session, publisher_id))


@router.put("/{publisher_id}", response_model=PublisherRead)
async def update_publisher_endpoint(
    publisher_id: str,
    payload: PublisherUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> PublisherRead:
    _check_telegram_id(payload.telegram_id)
    publisher = await update_publisher(session, await _load(session, publisher_id), payload)
    record_audit(
        session,
        action="publisher.updated",
        user_id=admin.id,
        entity_type="publisher",
        entity_id=publisher.id,
        details={"fields": sorted(payload.model_dump(exclude_unset=True))},
        request=request,
    )
    await session.commit()
    return PublisherRead.model_validate(publisher)


@router.delete("/{publisher_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_publisher_endpoint(
    publisher_id: str,
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> Response:
    publisher = await _load(session, publisher_id)
    publisher.status = "inactive"
    publisher.updated_at = utcnow()
    record_audit(
        session,
        action="publisher.deactivated",
        user_id=admin.id,
        entity_type="publisher",
        entity_id=publisher.id,
        request=request,
    )
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
