from src.config import settings
from src.worker import tasks
from src.worker.celery_app import celery_app
from src.worker.dispatch import kick_worker
from tests.factories import create_creative, run


class _FakeTask:
    def __init__(self, *, fail=False):
        self.calls = 0
        self.fail = fail

    def delay(self):
        self.calls += 1
        if self.fail:
            raise ConnectionError("broker unreachable")


def test_kick_is_a_noop_when_celery_is_disabled(monkeypatch):
    fake = _FakeTask()
    monkeypatch.setattr(settings, "celery_enabled", False)
    monkeypatch.setattr(tasks, "process_jobs", fake)

    assert kick_worker() is False
    assert fake.calls == 0


def test_kick_sends_the_process_jobs_task(monkeypatch):
    fake = _FakeTask()
    monkeypatch.setattr(settings, "celery_enabled", True)
    monkeypatch.setattr(tasks, "process_jobs", fake)

    assert kick_worker() is True
    assert fake.calls == 1


def test_broker_errors_do_not_propagate(monkeypatch):
    monkeypatch.setattr(settings, "celery_enabled", True)
    monkeypatch.setattr(tasks, "process_jobs", _FakeTask(fail=True))

    assert kick_worker() is False


def test_beat_schedule_covers_every_maintenance_task():
    scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    assert scheduled == {
        "creative_approval.process_jobs",
        "creative_approval.discover_pending_creatives",
        "creative_approval.auto_transition_requests",
        "creative_approval.cleanup_idempotency",
        "creative_approval.job_health_check",
        "creative_approval.warmup_grammar",
    }
    assert set(scheduled) <= set(celery_app.tasks)


def test_tasks_run_their_work_against_the_configured_database():
    assert tasks.auto_transition_requests.run() == 0
    assert tasks.cleanup_idempotency.run() == 0
    assert tasks.process_jobs.run() == {"processed": 0, "paused": False, "reason": None}


def test_discovery_kicks_the_worker_only_when_it_enqueued_scans(client, cron_headers, monkeypatch):
    fake = _FakeTask()
    monkeypatch.setattr(settings, "celery_enabled", True)
    monkeypatch.setattr(tasks, "process_jobs", fake)

    r = client.get("/api/v1/cron/discover-pending-creatives", headers=cron_headers)
    assert r.json()["enqueued"] == 0
    assert fake.calls == 0

    run(create_creative())
    r = client.get("/api/v1/cron/discover-pending-creatives", headers=cron_headers)
    assert r.json()["enqueued"] == 1
    assert fake.calls == 1
