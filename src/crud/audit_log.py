from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit_log import AuditLog


async def list_audit_logs(
    session: AsyncSession,
    *,
    action: str | None = None,
    entity_type: str | None = None,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[AuditLog], int]:
    q = select(AuditLog)
    if action is not None:
        q = q.where(AuditLog.action == action)
    if entity_type is not None:
        q = q.where(AuditLog.entity_type == entity_type)

    total = (await session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()

    q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset((page - 1) * page_size).limit(page_size)
    r = await session.execute(q)
    return list(r.scalars().all()), int(total or 0)
