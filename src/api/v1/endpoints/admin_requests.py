from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import parse_uuid, require_admin
from src.crud.creative_request import (
    SORT_FIELDS,
    get_request,
    list_request_creatives,
    list_requests,
    list_status_history,
)
from src.database import get_db
from src.models.user import User
from src.schemas.creative_request import (
    CreativeRead,
    CreativeRequestDetail,
    CreativeRequestListResponse,
    CreativeRequestRead,
    PageMeta,
    ReturnRequestBody,
    StatusHistoryRead,
    TransitionResponse,
)
from src.services.workflow import RequestWorkflowService

router = APIRouter(prefix="/admin/requests", tags=["admin-requests"])

REQUEST_STATUSES = {"new", "pending", "approved", "rejected", "sent-back"}
APPROVAL_STAGES = {"admin", "advertiser", "completed"}


def _validate_filters(statuses: list[str] | None, approval_stage: str | None, sort_by: str, sort_order: str) -> None:
    if statuses and not set(statuses) <= REQUEST_STATUSES:
        raise HTTPException(status_code=422, detail="Invalid status")
    if approval_stage is not None and approval_stage not in APPROVAL_STAGES:
        raise HTTPException(status_code=422, detail="Invalid approval_stage")
    if sort_by not in SORT_FIELDS:
        raise HTTPException(status_code=422, detail="Invalid sort_by")
    if sort_order not in {"asc", "desc"}:
        raise HTTPException(status_code=422, detail="Invalid sort_order")


@router.get("", response_model=CreativeRequestListResponse)
async def list_requests_endpoint(
    status_filter: list[str] | None = Query(None, alias="status", description="Repeatable request status filter"),
    approval_stage: str | None = Query(None, description="admin | advertiser | completed"),
    search: str | None = Query(None, description="Offer, publisher, email or tracking code"),
    sort_by: str = Query("submitted_at", description="submitted_at | updated_at | priority | offer_name"),
    sort_order: str = Query("desc", description="asc | desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> CreativeRequestListResponse:
    _validate_filters(status_filter, approval_stage, sort_by, sort_order)

    items, total = await list_requests(
        session,
        statuses=status_filter,
        approval_stage=approval_stage,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return CreativeRequestListResponse(
        data=[CreativeRequestRead.model_validate(i) for i in items],
        meta=PageMeta(page=page, limit=limit, total=total),
    )


@router.get("/{request_id}", response_model=CreativeRequestDetail)
async def get_request_endpoint(
    request_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> CreativeRequestDetail:
    req_id = parse_uuid(request_id, not_found="Request not found")
    creative_request = await get_request(session, request_id=req_id)
    if creative_request is None:
        raise HTTPException(status_code=404, detail="Request not found")

    creatives = await list_request_creatives(session, request_id=req_id)
    payload = CreativeRequestRead.model_validate(creative_request).model_dump()
    payload["creatives"] = [CreativeRead.model_validate(c).model_dump() for c in creatives]
    return CreativeRequestDetail(**payload)


@router.get("/{request_id}/history", response_model=list[StatusHistoryRead])
async def request_history_endpoint(
    request_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> list[StatusHistoryRead]:
    req_id = parse_uuid(request_id, not_found="Request not found")
    if await get_request(session, request_id=req_id) is None:
        raise HTTPException(status_code=404, detail="Request not found")
    rows = await list_status_history(session, request_id=req_id)
    return [StatusHistoryRead.model_validate(r) for r in rows]


@router.post("/{request_id}/forward", status_code=status.HTTP_204_NO_CONTENT)
async def forward_request_endpoint(
    request_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> Response:
    req_id = parse_uuid(request_id, not_found="Request not found")
    await RequestWorkflowService().forward(session, req_id, admin_id=admin.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{request_id}/return", response_model=TransitionResponse)
async def return_request_endpoint(
    request_id: str,
    payload: ReturnRequestBody,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    req_id = parse_uuid(request_id, not_found="Request not found")
    creative_request = await RequestWorkflowService().return_to_publisher(
        session, req_id, admin_id=admin.id, feedback=payload.text
    )
    return TransitionResponse(
        id=creative_request.id,
        status=creative_request.status,
        approval_stage=creative_request.approval_stage,
        advertiser_status=creative_request.advertiser_status,
    )
