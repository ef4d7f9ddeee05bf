from __future__ import annotations

from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import require_admin
from src.config import settings
from src.crud.audit_log import list_audit_logs
from src.database import get_db
from src.models.user import User
from src.schemas.creative_request import CreativeRead
from src.schemas.job import JobRead
from src.schemas.ops import (
    AuditLogListResponse,
    AuditLogRead,
    OpsMetricsResponse,
    ResetStuckResponse,
    StuckCreativesResponse,
)
from src.services import creative_status
from src.services.audit import record_audit
from src.services.ops_metrics import collect_ops_metrics

logger = logging.getLogger("creative_approval.api.ops")

router = APIRouter(prefix="/admin", tags=["ops"])


def _stuck_after() -> timedelta:
    return timedelta(minutes=settings.creative_scan_stuck_minutes)


@router.get("/ops/metrics", response_model=OpsMetricsResponse)
async def ops_metrics_endpoint(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> OpsMetricsResponse:
    metrics = await collect_ops_metrics(session)
    for key in ("active", "failed", "recent"):
        metrics[key] = [JobRead.model_validate(j) for j in metrics[key]]
    return OpsMetricsResponse(**metrics)


@router.get("/ops/stuck-creatives", response_model=StuckCreativesResponse)
async def stuck_creatives_endpoint(
    limit: int = Query(100, ge=1, le=500),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> StuckCreativesResponse:
    creatives = await creative_status.list_stuck_scanning(session, older_than=_stuck_after(), limit=limit)
    return StuckCreativesResponse(
        items=[CreativeRead.model_validate(c) for c in creatives],
        threshold_minutes=settings.creative_scan_stuck_minutes,
    )


@router.post("/ops/creatives/reset-stuck-scanning", response_model=ResetStuckResponse)
async def reset_stuck_scanning_endpoint(
    request: Request,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> ResetStuckResponse:
    creatives = await creative_status.list_stuck_scanning(session, older_than=_stuck_after(), limit=500)
    ids = [c.id for c in creatives]
    if not ids:
        return ResetStuckResponse(reset=0)

    await creative_status.update_creative_statuses(
        session, ids, status=creative_status.PENDING, scan_error=creative_status.STUCK_SCAN_RESET_MESSAGE
    )
    record_audit(
        session,
        action="creatives.reset_stuck_scanning",
        user_id=admin.id,
        entity_type="creative",
        details={"count": len(ids), "creative_ids": [str(i) for i in ids]},
        request=request,
    )
    await session.commit()

    logger.warning("stuck_creatives_reset count=%s admin_id=%s", len(ids), admin.id)
    return ResetStuckResponse(reset=len(ids), ids=ids)


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def audit_logs_endpoint(
    action: str | None = Query(None),
    entity_type: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    items, total = await list_audit_logs(
        session, action=action, entity_type=entity_type, page=page, page_size=page_size
    )
    return AuditLogListResponse(
        items=[AuditLogRead.model_validate(i) for i in items],
        total=total,
        page=page,
        page_size=page_size,
    )
