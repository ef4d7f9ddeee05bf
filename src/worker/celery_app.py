from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from src.config import settings


def make_celery() -> Celery:
    """Create the Celery app.

    Beat mirrors the /api/v1/cron/* schedule so deployments without an
    external scheduler still drain the job table.
    """

    celery = Celery(
        "creative_approval",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=["src.worker.tasks"],
    )

    celery.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        beat_schedule={
            "process-jobs": {"task": "creative_approval.process_jobs", "schedule": 60.0},
            "discover-pending-creatives": {
                "task": "creative_approval.discover_pending_creatives",
                "schedule": crontab(minute="*/5"),
            },
            "auto-transition-requests": {
                "task": "creative_approval.auto_transition_requests",
                "schedule": crontab(minute=0, hour="*/6"),
            },
            "cleanup-idempotency": {
                "task": "creative_approval.cleanup_idempotency",
                "schedule": crontab(minute=30, hour=3),
            },
            "job-health-check": {
                "task": "creative_approval.job_health_check",
                "schedule": crontab(minute=0),
            },
            "warmup-grammar": {
                "task": "creative_approval.warmup_grammar",
                "schedule": crontab(minute="*/10"),
            },
        },
    )

    return celery


celery_app = make_celery()
