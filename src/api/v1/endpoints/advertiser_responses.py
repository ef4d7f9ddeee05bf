from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import AdvertiserPrincipal, parse_uuid, require_advertiser
from src.crud.creative_request import list_requests
from src.database import get_db
from src.models.creative_request import CreativeRequest
from src.schemas.creative_request import (
    AdvertiserActionBody,
    CreativeRequestListResponse,
    CreativeRequestRead,
    PageMeta,
    ReasonBody,
    TransitionResponse,
)
from src.services.errors import ValidationFailed
from src.services.workflow import RequestWorkflowService

router = APIRouter(prefix="/advertiser/responses", tags=["advertiser-responses"])


def _transition_response(creative_request: CreativeRequest) -> TransitionResponse:
    return TransitionResponse(
        id=creative_request.id,
        status=creative_request.status,
        approval_stage=creative_request.approval_stage,
        advertiser_status=creative_request.advertiser_status,
    )


@router.get("", response_model=CreativeRequestListResponse)
async def list_responses_endpoint(
    status_filter: list[str] | None = Query(None, alias="status"),
    approval_stage: str | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: AdvertiserPrincipal = Depends(require_advertiser),
    session: AsyncSession = Depends(get_db),
) -> CreativeRequestListResponse:
    items, total = await list_requests(
        session,
        statuses=status_filter,
        approval_stage=approval_stage,
        advertiser_id=principal.advertiser.id,
        search=search,
        page=page,
        limit=limit,
    )
    return CreativeRequestListResponse(
        data=[CreativeRequestRead.model_validate(i) for i in items],
        meta=PageMeta(page=page, limit=limit, total=total),
    )


@router.post("", response_model=TransitionResponse)
async def respond_endpoint(
    payload: AdvertiserActionBody,
    principal: AdvertiserPrincipal = Depends(require_advertiser),
    session: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    workflow = RequestWorkflowService()
    if payload.action == "APPROVE":
        creative_request = await workflow.advertiser_approve(
            session,
            payload.request_id,
            advertiser_id=principal.advertiser.id,
            user_id=principal.user.id,
            comments=payload.comments,
        )
    else:
        if not (payload.comments or "").strip():
            raise ValidationFailed("Comments are required when rejecting")
        creative_request = await workflow.advertiser_reject(
            session,
            payload.request_id,
            advertiser_id=principal.advertiser.id,
            user_id=principal.user.id,
            reason=payload.comments,
        )
    return _transition_response(creative_request)


@router.post("/{request_id}/approve", response_model=TransitionResponse)
async def approve_endpoint(
    request_id: str,
    payload: ReasonBody | None = None,
    principal: AdvertiserPrincipal = Depends(require_advertiser),
    session: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    req_id = parse_uuid(request_id, not_found="Request not found")
    creative_request = await RequestWorkflowService().advertiser_approve(
        session,
        req_id,
        advertiser_id=principal.advertiser.id,
        user_id=principal.user.id,
        comments=payload.text if payload else None,
    )
    return _transition_response(creative_request)


@router.post("/{request_id}/reject", response_model=TransitionResponse)
async def reject_endpoint(
    request_id: str,
    payload: ReasonBody | None = None,
    principal: AdvertiserPrincipal = Depends(require_advertiser),
    session: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    req_id = parse_uuid(request_id, not_found="Request not found")
    creative_request = await RequestWorkflowService().advertiser_reject(
        session,
        req_id,
        advertiser_id=principal.advertiser.id,
        user_id=principal.user.id,
        reason=payload.text if payload else None,
    )
    return _transition_response(creative_request)


@router.post("/{request_id}/send-back", response_model=TransitionResponse)
async def send_back_endpoint(
    request_id: str,
    payload: ReasonBody,
    principal: AdvertiserPrincipal = Depends(require_advertiser),
    session: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    req_id = parse_uuid(request_id, not_found="Request not found")
    creative_request = await RequestWorkflowService().advertiser_send_back(
        session,
        req_id,
        advertiser_id=principal.advertiser.id,
        user_id=principal.user.id,
        reason=payload.text,
    )
    return _transition_response(creative_request)
