import pytest

from src.database import SessionLocal
from src.models.background_job import BackgroundJob
from src.models.background_job_event import BackgroundJobEvent
from src.services.job_queue import JobQueueDefaults, JobQueueService
from src.services.job_runner import JobRunner
from src.services.system_state import pause_job_queue
from tests.factories import all_rows, create_job, get

pytestmark = pytest.mark.anyio


async def _event_types(job_id):
    rows = await all_rows(BackgroundJobEvent, BackgroundJobEvent.job_id == job_id)
    return [e.type for e in sorted(rows, key=lambda e: e.created_at)]


def _runner(handlers, **defaults):
    queue = JobQueueService(SessionLocal, defaults=JobQueueDefaults(**defaults))
    return JobRunner(SessionLocal, handlers=handlers, queue=queue, max_seconds=30)


async def test_runner_completes_jobs_with_progress():
    job = await create_job(type="count", payload={"n": 3})

    async def count(ctx):
        for i in range(1, ctx.payload["n"] + 1):
            await ctx.report_progress(i, ctx.payload["n"])
        return {"counted": ctx.payload["n"]}

    result = await _runner({"count": count}).run()
    assert (result.processed, result.paused) == (1, False)

    row = await get(BackgroundJob, job.id)
    assert row.status == "completed"
    assert row.result == {"counted": 3}
    assert (row.progress, row.total) == (3, 3)
    assert await _event_types(job.id) == ["started", "progress", "progress", "progress", "completed"]


async def test_runner_drains_every_due_job():
    await create_job(type="noop")
    await create_job(type="noop")

    async def noop(ctx):
        return None

    assert (await _runner({"noop": noop}).run()).processed == 2
    assert {j.status for j in await all_rows(BackgroundJob)} == {"completed"}


async def test_handler_errors_go_through_the_retry_policy():
    job = await create_job(type="flaky")

    async def flaky(ctx):
        raise RuntimeError("fetch failed")

    await _runner({"flaky": flaky}).run()

    row = await get(BackgroundJob, job.id)
    assert row.status == "pending"
    assert row.retry_count == 1
    assert row.error_type == "network"
    assert await _event_types(job.id) == ["started", "retry_scheduled"]


async def test_unknown_job_types_fail_without_retry():
    job = await create_job(type="mystery")
    await _runner({}).run()

    row = await get(BackgroundJob, job.id)
    assert (row.status, row.error_type, row.error) == ("failed", "system", "Unknown job type: mystery")


async def test_cancelled_handlers_stop_cleanly():
    job = await create_job(type="long")
    queue = JobQueueService(SessionLocal)

    async def long_running(ctx):
        await queue.cancel_job(ctx.job_id, reason="Cancelled by user")
        await ctx.ensure_not_cancelled()
        raise AssertionError("should have stopped")

    await JobRunner(SessionLocal, handlers={"long": long_running}, queue=queue, max_seconds=30).run()

    row = await get(BackgroundJob, job.id)
    assert row.status == "cancelled"
    assert await _event_types(job.id) == ["started", "cancelled", "cancelled"]


async def test_ensure_not_cancelled_passes_for_live_jobs():
    job = await create_job(type="capture")
    seen = []

    async def capture(ctx):
        await ctx.ensure_not_cancelled()
        seen.append(ctx.job_id)
        return {}

    await _runner({"capture": capture}).run()
    assert seen == [job.id]


async def test_paused_queue_is_not_processed():
    job = await create_job(type="noop")
    async with SessionLocal() as session:
        async with session.begin():
            await pause_job_queue(session, reason="Too many dead jobs")

    async def noop(ctx):
        return None

    result = await _runner({"noop": noop}).run()
    assert (result.processed, result.paused, result.reason) == (0, True, "Too many dead jobs")
    assert (await get(BackgroundJob, job.id)).status == "pending"


async def test_runner_stops_when_a_dead_letter_spike_pauses_the_queue(monkeypatch):
    from src.services import job_queue as job_queue_module

    async def no_alert(message, **kwargs):
        return False

    monkeypatch.setattr(job_queue_module, "send_alert", no_alert)
    await create_job(type="forbidden")
    second = await create_job(type="forbidden")

    async def forbidden(ctx):
        raise RuntimeError("403 Forbidden")

    result = await _runner({"forbidden": forbidden}, dead_spike_threshold=1).run()
    assert (result.processed, result.paused) == (1, True)
    assert (await get(BackgroundJob, second.id)).status == "pending"
