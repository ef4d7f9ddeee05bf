from datetime import timedelta

from src.models.background_job import BackgroundJob
from src.models.idempotency_key import IdempotencyKey
from src.timeutils import utcnow
from tests.factories import all_rows, auth_headers_for, create_job, run


async def _add_key(key, *, expires_at):
    from src.database import SessionLocal

    async with SessionLocal() as session:
        session.add(
            IdempotencyKey(id=key, request_hash="h", response_body={}, response_status=201, expires_at=expires_at)
        )
        await session.commit()


def test_cron_requires_the_secret_or_an_admin_session(client):
    assert client.get("/api/v1/cron/process-jobs").status_code == 401

    r = client.get("/api/v1/cron/process-jobs", headers={"Authorization": "Bearer wrong"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Unauthorized"

    advertiser = run(auth_headers_for(email="adv@example.com", role="advertiser"))
    assert client.get("/api/v1/cron/process-jobs", headers=advertiser).status_code == 401

    admin = run(auth_headers_for(email="admin@example.com", role="admin"))
    assert client.post("/api/v1/cron/process-jobs", headers=admin).status_code == 200


def test_cron_rejects_a_non_ascii_bearer_token(client):
    r = client.get("/api/v1/cron/process-jobs", headers={"Authorization": "Bearer café".encode()})
    assert r.status_code == 401
    assert r.json()["detail"] == "Unauthorized"


def test_process_jobs_runs_the_worker(client, cron_headers):
    job = run(create_job(type="no_such_handler"))

    r = client.get("/api/v1/cron/process-jobs", headers=cron_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Worker run complete", "processed": 1, "paused": False, "reason": None}

    [row] = run(all_rows(BackgroundJob, BackgroundJob.id == job.id))
    assert row.status == "failed"


def test_process_jobs_reports_a_paused_queue(client, cron_headers):
    from src.database import SessionLocal
    from src.services.system_state import pause_job_queue

    async def _pause():
        async with SessionLocal() as session:
            async with session.begin():
                await pause_job_queue(session, reason="maintenance")

    run(_pause())
    r = client.get("/api/v1/cron/process-jobs", headers=cron_headers)
    assert r.json() == {"message": "Job queue paused", "processed": 0, "paused": True, "reason": "maintenance"}


def test_cleanup_idempotency_deletes_expired_keys(client, cron_headers):
    run(_add_key("old", expires_at=utcnow() - timedelta(hours=1)))
    run(_add_key("live", expires_at=utcnow() + timedelta(hours=1)))

    r = client.get("/api/v1/cron/cleanup-idempotency", headers=cron_headers)
    assert r.json() == {"deleted": 1}
    assert [k.id for k in run(all_rows(IdempotencyKey))] == ["live"]


def test_health_check_flags_a_stalled_queue(client, cron_headers):
    r = client.get("/api/v1/cron/health-check", headers=cron_headers)
    assert r.json() == {"healthy": False, "last_completed_at": None, "alerted": False}

    run(create_job(status="completed", finished_at=utcnow() - timedelta(minutes=5)))
    body = client.get("/api/v1/cron/health-check", headers=cron_headers).json()
    assert body["healthy"] is True
    assert body["last_completed_at"] is not None


def test_warmup_without_a_grammar_service(client, cron_headers):
    r = client.post("/api/v1/cron/warmup-grammar", headers=cron_headers)
    assert r.json() == {"success": False, "message": "GRAMMAR_AI_URL not configured"}
