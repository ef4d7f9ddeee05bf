from __future__ import annotations

import logging

from src.config import settings

logger = logging.getLogger("creative_approval.dispatch")


def kick_worker() -> bool:
    """Ask Celery to drain the job table now instead of waiting for beat.

    A no-op unless CELERY_ENABLED is set. Enqueued jobs stay in the table
    either way, so a failed kick only delays them until the next poll.
    """

    if not settings.celery_enabled:
        return False

    from src.worker.tasks import process_jobs

    try:
        process_jobs.delay()
    except Exception:
        logger.exception("kick_worker_failed")
        return False
    return True
