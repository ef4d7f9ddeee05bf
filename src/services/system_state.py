from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.system_state import SystemState
from src.timeutils import utcnow

JOB_QUEUE_PAUSED_KEY = "jobQueuePaused"


async def get_system_state(session: AsyncSession, key: str) -> dict[str, Any] | None:
    row = await session.get(SystemState, key)
    return None if row is None else dict(row.value or {})


async def set_system_state(session: AsyncSession, key: str, value: dict[str, Any]) -> None:
    """Upsert a state value. Does not commit."""

    row = await session.get(SystemState, key, with_for_update=True)
    if row is None:
        session.add(SystemState(key=key, value=value, updated_at=utcnow()))
    else:
        row.value = value
        row.updated_at = utcnow()
    await session.flush()


async def get_queue_pause(session: AsyncSession) -> dict[str, Any] | None:
    """Return the pause record when the job queue is paused, else None."""

    state = await get_system_state(session, JOB_QUEUE_PAUSED_KEY)
    if state and state.get("paused"):
        return state
    return None


async def pause_job_queue(session: AsyncSession, *, reason: str) -> None:
    await set_system_state(
        session,
        JOB_QUEUE_PAUSED_KEY,
        {"paused": True, "reason": reason, "at": utcnow().isoformat()},
    )


async def resume_job_queue(session: AsyncSession) -> None:
    await set_system_state(
        session,
        JOB_QUEUE_PAUSED_KEY,
        {"paused": False, "reason": None, "at": utcnow().isoformat()},
    )
