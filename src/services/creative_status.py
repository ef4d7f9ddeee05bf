from __future__ import annotations

from datetime import timedelta
from typing import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.creative import Creative
from src.timeutils import utcnow

PENDING = "pending"
SCANNING = "scanning"
CLEAN = "clean"
INFECTED = "infected"
FAILED = "failed"
SENT_BACK = "sent-back"

STUCK_SCAN_RESET_MESSAGE = "Reset by admin: stuck in SCANNING status for >15 minutes"


def _values_for(status: str, scan_error: str | None) -> dict:
    now = utcnow()
    values: dict = {"status": status, "status_updated_at": now, "updated_at": now}
    if status == SCANNING:
        values["scan_attempts"] = Creative.scan_attempts + 1
    elif status == FAILED or scan_error is not None:
        values["last_scan_error"] = scan_error
    return values


async def update_creative_status(
    session: AsyncSession,
    creative_id: UUID,
    *,
    status: str,
    scan_error: str | None = None,
) -> None:
    """Set a creative's status. Entering scanning counts a scan attempt. Does not commit."""

    status = status.lower()
    await session.execute(update(Creative).where(Creative.id == creative_id).values(**_values_for(status, scan_error)))


async def update_creative_statuses(
    session: AsyncSession,
    creative_ids: Iterable[UUID],
    *,
    status: str,
    scan_error: str | None = None,
) -> None:
    ids = list(creative_ids)
    if not ids:
        return
    status = status.lower()
    await session.execute(update(Creative).where(Creative.id.in_(ids)).values(**_values_for(status, scan_error)))


async def list_stuck_scanning(session: AsyncSession, *, older_than: timedelta, limit: int = 100) -> list[Creative]:
    cutoff = utcnow() - older_than
    r = await session.execute(
        select(Creative)
        .where(Creative.status == SCANNING)
        .where(Creative.status_updated_at < cutoff)
        .order_by(Creative.status_updated_at.asc())
        .limit(limit)
    )
    return list(r.scalars().all())
