from datetime import timedelta
import random
import uuid

import pytest

from src.database import SessionLocal
from src.models.background_job import BackgroundJob
from src.models.background_job_event import BackgroundJobEvent
from src.services import job_queue as job_queue_module
from src.services.errors import InvalidTransitionError, NotFoundError, ReplayLimitExceeded
from src.services.job_queue import JobQueueDefaults, JobQueueService
from src.services.system_state import get_queue_pause
from src.timeutils import ensure_aware, utcnow
from tests.factories import all_rows, create_job, get

pytestmark = pytest.mark.anyio


def _queue(**defaults) -> JobQueueService:
    return JobQueueService(SessionLocal, defaults=JobQueueDefaults(**defaults), rng=random.Random(7))


async def _events(job_id):
    rows = await all_rows(BackgroundJobEvent, BackgroundJobEvent.job_id == job_id)
    return sorted(rows, key=lambda e: e.created_at)


@pytest.fixture
def alerts(monkeypatch):
    sent = []

    async def fake_send_alert(message, **kwargs):
        sent.append(message)
        return True

    monkeypatch.setattr(job_queue_module, "send_alert", fake_send_alert)
    return sent


async def test_enqueue_stages_a_pending_job_with_default_budget():
    queue = _queue(max_retries=4)
    async with SessionLocal() as session:
        job = await queue.enqueue(session, type="everflow_sync", payload={"user_id": "u1"})
        await session.commit()

    row = await get(BackgroundJob, job.id)
    assert (row.status, row.max_retries, row.retry_count, row.payload) == ("pending", 4, 0, {"user_id": "u1"})


async def test_claim_takes_the_oldest_due_job_and_counts_the_attempt():
    now = utcnow()
    older = await create_job(created_at=now - timedelta(minutes=5))
    await create_job(created_at=now - timedelta(minutes=10), next_run_at=now + timedelta(minutes=30))
    await create_job(created_at=now)

    queue = _queue()
    claimed = await queue.claim_next_job()
    assert claimed.id == older.id

    row = await get(BackgroundJob, older.id)
    assert row.status == "running"
    assert row.attempt == 1
    assert row.started_at is not None


async def test_claim_returns_none_when_nothing_is_due():
    await create_job(next_run_at=utcnow() + timedelta(hours=1))
    await create_job(status="completed")
    assert await _queue().claim_next_job() is None


async def test_retryable_failure_is_rescheduled_with_backoff(alerts):
    job = await create_job(status="running", started_at=utcnow(), max_retries=3)

    status = await _queue().fail_job(job.id, ConnectionError("connection refused by upstream"))
    assert status == "pending"

    row = await get(BackgroundJob, job.id)
    assert row.retry_count == 1
    assert row.error_type == "network"
    assert row.error.startswith("Network error: ")
    assert ensure_aware(row.next_run_at) > utcnow()
    assert row.dead_lettered_at is None

    [event] = await _events(job.id)
    assert event.type == "retry_scheduled"
    assert event.data["retryCount"] == 1
    assert event.data["maxRetries"] == 3
    assert alerts == []

    # Not due yet.
    assert await _queue().claim_next_job() is None


async def test_final_retry_sends_an_alert(alerts):
    job = await create_job(status="running", started_at=utcnow(), max_retries=1)
    assert await _queue().fail_job(job.id, "Request timed out") == "pending"
    assert len(alerts) == 1
    assert "final retry" in alerts[0]


async def test_non_retryable_failure_is_dead_lettered(alerts):
    job = await create_job(status="running", started_at=utcnow())

    status = await _queue().fail_job(job.id, "API request failed: 403 Forbidden")
    assert status == "dead"

    row = await get(BackgroundJob, job.id)
    assert row.error_type == "permission"
    assert row.retry_count == 0
    assert row.dead_lettered_at is not None
    assert row.finished_at is not None

    [event] = await _events(job.id)
    assert event.type == "failed"
    assert event.data["deadLetter"] is True
    assert event.data["retryable"] is False


async def test_exhausted_retry_budget_is_dead_lettered(alerts):
    job = await create_job(status="running", started_at=utcnow(), retry_count=2, max_retries=2)
    assert await _queue().fail_job(job.id, "503 Service Unavailable") == "dead"
    assert (await get(BackgroundJob, job.id)).retry_count == 2


async def test_failure_of_a_job_that_is_no_longer_running_is_ignored(alerts):
    job = await create_job(status="cancelled")
    assert await _queue().fail_job(job.id, "boom") == "cancelled"
    assert await _events(job.id) == []


async def test_dead_letter_spike_pauses_the_queue(alerts):
    queue = _queue(dead_spike_threshold=2, dead_spike_window_minutes=10)
    first = await create_job(status="running", started_at=utcnow())
    second = await create_job(status="running", started_at=utcnow())

    await queue.fail_job(first.id, "403 Forbidden")
    async with SessionLocal() as session:
        assert await get_queue_pause(session) is None

    await queue.fail_job(second.id, "403 Forbidden")
    async with SessionLocal() as session:
        pause = await get_queue_pause(session)
    assert pause is not None
    assert "Too many dead jobs" in pause["reason"]
    assert any("Job queue paused" in a for a in alerts)

    # Already paused: no second pause.
    assert await queue.check_dead_letter_spike() is False


async def test_complete_job_records_result_and_duration():
    job = await create_job(status="running", started_at=utcnow() - timedelta(seconds=2))
    assert await _queue().complete_job(job.id, result={"total": 3}, total=3) is True

    row = await get(BackgroundJob, job.id)
    assert row.status == "completed"
    assert (row.progress, row.total) == (3, 3)
    assert row.duration_ms >= 2000


async def test_complete_job_is_ignored_after_cancellation():
    job = await create_job(status="cancelled")
    assert await _queue().complete_job(job.id, result={}) is False
    assert (await get(BackgroundJob, job.id)).status == "cancelled"


async def test_cancel_only_affects_active_jobs():
    pending = await create_job()
    done = await create_job(status="completed")
    queue = _queue()

    outcome = await queue.cancel_job(pending.id, reason="Cancelled by user")
    assert outcome.cancelled is True
    row = await get(BackgroundJob, pending.id)
    assert (row.status, row.error) == ("cancelled", "Cancelled by user")

    outcome = await queue.cancel_job(done.id)
    assert outcome.cancelled is False
    assert outcome.job.status == "completed"

    with pytest.raises(NotFoundError):
        await queue.cancel_job(uuid.uuid4())


async def test_manual_retry_resets_counters():
    job = await create_job(status="dead", attempt=4, retry_count=3, error="boom", error_type="unknown", dead_lettered_at=utcnow())
    row = await _queue().retry_job(job.id)
    assert (row.status, row.attempt, row.retry_count, row.error, row.dead_lettered_at) == ("pending", 0, 0, None, None)

    [event] = await _events(job.id)
    assert event.type == "manual_retry"
    assert event.data["previousStatus"] == "dead"


async def test_manual_retry_of_an_active_job_is_rejected():
    job = await create_job(status="running")
    with pytest.raises(InvalidTransitionError) as exc:
        await _queue().retry_job(job.id)
    assert exc.value.detail == "Cannot retry a job that is running"


async def test_replay_copies_payload_and_is_rate_limited():
    original = await create_job(status="completed", payload={"user_id": "u1", "filters": {"status": "active"}}, max_retries=2)
    queue = _queue(replay_limit=2, replay_window_minutes=5)

    first = await queue.replay_job(original.id)
    await queue.replay_job(original.id)

    copy = await get(BackgroundJob, first.id)
    assert copy.status == "pending"
    assert copy.type == original.type
    assert copy.max_retries == 2
    assert copy.payload["filters"] == {"status": "active"}
    assert copy.payload["replay_from_job_id"] == str(original.id)

    with pytest.raises(ReplayLimitExceeded):
        await queue.replay_job(original.id)

    assert (await get(BackgroundJob, original.id)).replay_count == 2
