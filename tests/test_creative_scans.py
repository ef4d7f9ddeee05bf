from datetime import timedelta
import uuid

import httpx
import pytest

from src.models.background_job import BackgroundJob
from src.models.creative import Creative
from src.models.external_task import ExternalTask
from src.services import job_handlers
from src.services.grammar import GrammarService
from src.services.malware_scan import MalwareScanClient
from src.timeutils import utcnow
from tests.factories import all_rows, auth_headers_for, create_creative, get, run


@pytest.fixture
def scanner(monkeypatch):
    verdicts = {}
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        verdict = verdicts.get("next", {"status": "clean"})
        if isinstance(verdict, int):
            return httpx.Response(verdict)
        return httpx.Response(200, json=verdict)

    def factory():
        return MalwareScanClient(
            base_url="https://scanner.test",
            api_key="scan-key",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    monkeypatch.setattr(job_handlers, "malware_scan_client_factory", factory)
    return verdicts, calls


def test_discovery_enqueues_one_scan_per_pending_creative(client, cron_headers):
    fresh = run(create_creative())
    run(create_creative(status="clean"))
    run(create_creative(created_at=utcnow() - timedelta(days=3)))

    r = client.get("/api/v1/cron/discover-pending-creatives", headers=cron_headers)
    assert r.status_code == 200
    assert (r.json()["discovered"], r.json()["enqueued"]) == (1, 1)

    [job] = run(all_rows(BackgroundJob))
    assert job.type == "creative_scan"
    assert job.payload == {"creative_id": str(fresh.id), "url": fresh.url}

    # Already in flight.
    r = client.get("/api/v1/cron/discover-pending-creatives", headers=cron_headers)
    assert (r.json()["discovered"], r.json()["enqueued"]) == (1, 0)


def test_scan_without_a_configured_scanner_marks_creatives_clean(client, cron_headers):
    creative = run(create_creative())
    client.get("/api/v1/cron/discover-pending-creatives", headers=cron_headers)
    client.get("/api/v1/cron/process-jobs", headers=cron_headers)

    row = run(get(Creative, creative.id))
    assert row.status == "clean"
    assert row.scan_attempts == 1

    [job] = run(all_rows(BackgroundJob))
    assert job.status == "completed"
    assert job.result["scan_status"] == "skipped"


def test_infected_verdict_is_recorded(client, cron_headers, scanner):
    verdicts, calls = scanner
    verdicts["next"] = {"status": "infected", "info": "EICAR test file"}
    creative = run(create_creative())

    client.get("/api/v1/cron/discover-pending-creatives", headers=cron_headers)
    client.get("/api/v1/cron/process-jobs", headers=cron_headers)

    row = run(get(Creative, creative.id))
    assert (row.status, row.last_scan_error) == ("infected", "EICAR test file")
    assert calls[0].headers["Authorization"] == "Bearer scan-key"


def test_scanner_failures_mark_the_creative_failed_and_retry_the_job(client, cron_headers, scanner):
    verdicts, _ = scanner
    verdicts["next"] = 503
    creative = run(create_creative())

    client.get("/api/v1/cron/discover-pending-creatives", headers=cron_headers)
    client.get("/api/v1/cron/process-jobs", headers=cron_headers)

    row = run(get(Creative, creative.id))
    assert row.status == "failed"
    assert "503" in row.last_scan_error

    [job] = run(all_rows(BackgroundJob))
    assert (job.status, job.retry_count, job.error_type) == ("pending", 1, "external_api")


def test_proofread_enqueues_a_grammar_check_and_lists_results(client, cron_headers):
    creative = run(create_creative())
    headers = run(auth_headers_for(email="admin@example.com", role="admin"))

    r = client.post(f"/api/v1/creatives/{creative.id}/proofread", headers=headers)
    assert r.status_code == 202
    job = run(get(BackgroundJob, uuid.UUID(r.json()["job_id"])))
    assert job.type == "grammar_check"
    assert job.payload["creative_id"] == str(creative.id)

    client.get("/api/v1/cron/process-jobs", headers=cron_headers)

    [task] = run(all_rows(ExternalTask))
    assert (task.source, task.status) == ("grammar_ai_mock", "completed")

    r = client.get(f"/api/v1/creatives/{creative.id}/proofread", headers=headers)
    assert r.status_code == 200
    [item] = r.json()["items"]
    assert item["result"]["status"] == "SUCCESS"


def test_proofread_requires_a_session_and_a_known_creative(client):
    creative = run(create_creative())
    assert client.post(f"/api/v1/creatives/{creative.id}/proofread").status_code == 401

    headers = run(auth_headers_for(email="adv@example.com", role="advertiser"))
    missing = uuid.uuid4()
    assert client.post(f"/api/v1/creatives/{missing}/proofread", headers=headers).status_code == 404
    assert client.get(f"/api/v1/creatives/{missing}/proofread", headers=headers).status_code == 404


@pytest.fixture
def grammar_ai(monkeypatch):
    remote = {"status": "PENDING"}
    polls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "files.test":
            return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})
        if request.url.path == "/process":
            return httpx.Response(200, json={"task_id": "task-42", "status": "PENDING"})
        polls.append(request.url.path)
        if isinstance(remote.get("code"), int):
            return httpx.Response(remote["code"])
        return httpx.Response(200, json=remote)

    def factory(session_maker):
        return GrammarService(
            session_maker,
            base_url="https://grammar.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    monkeypatch.setattr(job_handlers, "grammar_service_factory", factory)
    return remote, polls


def test_proofread_results_are_polled_until_the_ai_service_finishes(client, cron_headers, grammar_ai):
    remote, polls = grammar_ai
    creative = run(create_creative())
    headers = run(auth_headers_for(email="admin@example.com", role="admin"))

    assert client.post(f"/api/v1/creatives/{creative.id}/proofread", headers=headers).status_code == 202
    client.get("/api/v1/cron/process-jobs", headers=cron_headers)

    [task] = run(all_rows(ExternalTask))
    assert (task.source, task.status, task.external_task_id) == ("grammar_ai", "processing", "task-42")

    [item] = client.get(f"/api/v1/creatives/{creative.id}/proofread", headers=headers).json()["items"]
    assert item["status"] == "processing"
    assert polls == ["/task/task-42"]

    remote["code"] = 500
    [item] = client.get(f"/api/v1/creatives/{creative.id}/proofread", headers=headers).json()["items"]
    assert item["status"] == "processing"

    remote.clear()
    remote.update({"status": "SUCCESS", "corrections": []})
    [item] = client.get(f"/api/v1/creatives/{creative.id}/proofread", headers=headers).json()["items"]
    assert item["status"] == "completed"
    assert item["result"]["status"] == "SUCCESS"
    assert item["finished_at"] is not None

    [task] = run(all_rows(ExternalTask))
    assert task.status == "completed"

    client.get(f"/api/v1/creatives/{creative.id}/proofread", headers=headers)
    assert len(polls) == 3
