from __future__ import annotations

from datetime import timedelta
from typing import Any

import sqlalchemy as sa
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models.audit_log import AuditLog
from src.models.background_job import BackgroundJob
from src.models.creative import Creative
from src.services.creative_status import SCANNING
from src.timeutils import ensure_aware, utcnow

_LIST_LIMIT = 10


async def _job_list(session: AsyncSession, *statuses: str) -> list[BackgroundJob]:
    q = select(BackgroundJob).order_by(BackgroundJob.created_at.desc()).limit(_LIST_LIMIT)
    if statuses:
        q = q.where(BackgroundJob.status.in_(statuses))
    return list((await session.execute(q)).scalars().all())


async def collect_ops_metrics(session: AsyncSession) -> dict[str, Any]:
    """Snapshot of queue health for the ops dashboard."""

    now = utcnow()
    since = now - timedelta(hours=24)
    stuck_cutoff = now - timedelta(minutes=settings.creative_scan_stuck_minutes)

    jobs = BackgroundJob.__table__
    recent_finish = jobs.c.finished_at >= since
    totals = (
        await session.execute(
            select(
                func.sum(sa.case((jobs.c.status.in_(["pending", "running"]), 1), else_=0)).label("active"),
                func.sum(sa.case((sa.and_(jobs.c.status.in_(["failed", "dead"]), recent_finish), 1), else_=0)).label("failed_24h"),
                func.sum(sa.case((sa.and_(jobs.c.status == "completed", recent_finish), 1), else_=0)).label("completed_24h"),
                func.sum(sa.case((jobs.c.status == "dead", 1), else_=0)).label("dead_total"),
                func.avg(
                    sa.case((sa.and_(jobs.c.status == "completed", recent_finish), jobs.c.duration_ms), else_=None)
                ).label("avg_duration_ms"),
            )
        )
    ).mappings().one()

    failed_24h = int(totals["failed_24h"] or 0)
    completed_24h = int(totals["completed_24h"] or 0)
    finished_24h = failed_24h + completed_24h
    error_rate = round(failed_24h * 100.0 / finished_24h, 2) if finished_24h else 0.0

    audit_count = (
        await session.execute(select(func.count()).select_from(AuditLog).where(AuditLog.created_at >= since))
    ).scalar_one()
    stuck_count = (
        await session.execute(
            select(func.count())
            .select_from(Creative)
            .where(Creative.status == SCANNING)
            .where(Creative.status_updated_at < stuck_cutoff)
        )
    ).scalar_one()

    # Hourly buckets are built in Python so the query stays portable across databases.
    rows = (
        await session.execute(
            select(BackgroundJob.created_at, BackgroundJob.status).where(BackgroundJob.created_at >= since)
        )
    ).all()
    start_hour = since.replace(minute=0, second=0, microsecond=0)
    buckets: dict[str, dict[str, Any]] = {}
    for offset in range(25):
        hour = start_hour + timedelta(hours=offset)
        buckets[hour.isoformat()] = {"hour": hour.isoformat(), "created": 0, "completed": 0, "failed": 0}
    for created_at, status in rows:
        created = ensure_aware(created_at)
        key = created.replace(minute=0, second=0, microsecond=0).isoformat()
        bucket = buckets.get(key)
        if bucket is None:
            continue
        bucket["created"] += 1
        if status == "completed":
            bucket["completed"] += 1
        elif status in ("failed", "dead"):
            bucket["failed"] += 1

    return {
        "active_jobs": int(totals["active"] or 0),
        "failed_last_24h": failed_24h,
        "dead_total": int(totals["dead_total"] or 0),
        "error_rate": error_rate,
        "avg_duration_ms": float(totals["avg_duration_ms"]) if totals["avg_duration_ms"] is not None else None,
        "audit_logs_last_24h": int(audit_count or 0),
        "stuck_scanning": int(stuck_count or 0),
        "hourly": list(buckets.values()),
        "active": await _job_list(session, "pending", "running"),
        "failed": await _job_list(session, "failed", "dead"),
        "recent": await _job_list(session),
    }


async def last_completed_at(session: AsyncSession):
    r = await session.execute(select(func.max(BackgroundJob.finished_at)).where(BackgroundJob.status == "completed"))
    return ensure_aware(r.scalar_one_or_none())
