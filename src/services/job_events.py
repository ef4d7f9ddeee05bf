from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.background_job_event import BackgroundJobEvent
from src.timeutils import utcnow

logger = logging.getLogger("creative_approval.jobs.events")

STARTED = "started"
PROGRESS = "progress"
CHUNK_PROCESSED = "chunk_processed"
CANCELLED = "cancelled"
FAILED = "failed"
COMPLETED = "completed"
RETRY_SCHEDULED = "retry_scheduled"
MANUAL_RETRY = "manual_retry"


def add_job_event(
    session: AsyncSession,
    *,
    job_id: UUID,
    type: str,
    message: str | None = None,
    data: dict[str, Any] | None = None,
) -> BackgroundJobEvent:
    """Stage an event on the caller's transaction."""

    event = BackgroundJobEvent(job_id=job_id, type=type, message=message, data=data, created_at=utcnow())
    session.add(event)
    return event


async def log_job_event(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    job_id: UUID,
    type: str,
    message: str | None = None,
    data: dict[str, Any] | None = None,
) -> None:
    """Write an event in its own transaction.

    The audit trail is secondary to the job itself, so a failed write is
    logged and swallowed.
    """

    try:
        async with session_maker() as session:
            async with session.begin():
                add_job_event(session, job_id=job_id, type=type, message=message, data=data)
    except Exception:
        logger.exception("job_event_write_failed job_id=%s type=%s", job_id, type)
