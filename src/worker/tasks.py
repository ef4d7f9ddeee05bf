from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.config import settings
from src.services import scheduled
from src.worker.celery_app import celery_app

logger = logging.getLogger("creative_approval.worker")

T = TypeVar("T")


def _run(work: Callable[[async_sessionmaker[AsyncSession]], Awaitable[T]]) -> T:
    """Run async work on a fresh event loop with an engine bound to it."""

    async def _main() -> T:
        engine = create_async_engine(settings.database_url, poolclass=NullPool)
        try:
            return await work(async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession))
        finally:
            await engine.dispose()

    return asyncio.run(_main())


@celery_app.task(name="creative_approval.process_jobs")
def process_jobs() -> dict[str, Any]:
    result = _run(scheduled.process_jobs)
    logger.info("process_jobs_task processed=%s paused=%s", result.processed, result.paused)
    return {"processed": result.processed, "paused": result.paused, "reason": result.reason}


@celery_app.task(name="creative_approval.discover_pending_creatives")
def discover_pending_creatives() -> dict[str, Any]:
    result = _run(scheduled.discover_pending_creatives)
    return {"discovered": result.discovered, "enqueued": len(result.job_ids)}


@celery_app.task(name="creative_approval.auto_transition_requests")
def auto_transition_requests() -> int:
    return len(_run(scheduled.auto_transition_requests))


@celery_app.task(name="creative_approval.cleanup_idempotency")
def cleanup_idempotency() -> int:
    return _run(scheduled.cleanup_idempotency)


@celery_app.task(name="creative_approval.job_health_check")
def job_health_check() -> bool:
    return _run(scheduled.job_health_check).healthy


@celery_app.task(name="creative_approval.warmup_grammar")
def warmup_grammar() -> dict[str, Any]:
    return _run(scheduled.warmup_grammar)
