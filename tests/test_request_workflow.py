from datetime import timedelta

from src.models.creative import Creative
from src.models.creative_request import CreativeRequest
from src.timeutils import utcnow
from tests.factories import (
    all_rows,
    auth_headers_for,
    create_advertiser,
    create_request,
    get,
    run,
)


def _admin():
    return run(auth_headers_for(email="admin@example.com", role="admin"))


def _advertiser(advertiser):
    return run(auth_headers_for(email=advertiser.contact_email, role="advertiser"))


def test_admin_list_filters_searches_and_paginates(client):
    advertiser = run(create_advertiser())
    older = run(create_request(advertiser=advertiser, submitted_at=utcnow() - timedelta(days=2)))
    newer = run(create_request(advertiser=advertiser, status="pending", approval_stage="advertiser"))
    headers = _admin()

    r = client.get("/api/v1/admin/requests", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["meta"] == {"page": 1, "limit": 20, "total": 2}
    assert [i["id"] for i in body["data"]] == [str(newer.id), str(older.id)]

    r = client.get("/api/v1/admin/requests", params={"status": ["new"]}, headers=headers)
    assert [i["id"] for i in r.json()["data"]] == [str(older.id)]

    r = client.get("/api/v1/admin/requests", params={"approval_stage": "advertiser"}, headers=headers)
    assert [i["id"] for i in r.json()["data"]] == [str(newer.id)]

    r = client.get("/api/v1/admin/requests", params={"search": older.tracking_code.lower()}, headers=headers)
    assert [i["id"] for i in r.json()["data"]] == [str(older.id)]

    r = client.get("/api/v1/admin/requests", params={"limit": 1, "page": 2, "sort_order": "asc"}, headers=headers)
    assert [i["id"] for i in r.json()["data"]] == [str(newer.id)]
    assert r.json()["meta"]["total"] == 2


def test_admin_list_rejects_unknown_filters(client):
    headers = _admin()
    assert client.get("/api/v1/admin/requests", params={"status": "done"}, headers=headers).status_code == 422
    assert client.get("/api/v1/admin/requests", params={"sort_by": "email"}, headers=headers).status_code == 422


def test_request_detail_includes_creatives(client):
    request = run(create_request(creatives=2))
    r = client.get(f"/api/v1/admin/requests/{request.id}", headers=_admin())
    assert r.status_code == 200
    body = r.json()
    assert body["tracking_code"] == request.tracking_code
    assert len(body["creatives"]) == 2


def test_forward_moves_request_to_advertiser_and_records_history(client):
    request = run(create_request())
    headers = _admin()

    r = client.post(f"/api/v1/admin/requests/{request.id}/forward", headers=headers)
    assert r.status_code == 204

    row = run(get(CreativeRequest, request.id))
    assert (row.status, row.approval_stage, row.admin_status, row.advertiser_status) == (
        "pending",
        "advertiser",
        "approved",
        "pending",
    )
    assert row.admin_approved_at is not None

    history = client.get(f"/api/v1/admin/requests/{request.id}/history", headers=headers).json()
    assert [(h["from_status"], h["to_status"], h["actor_role"]) for h in history] == [("new", "pending", "admin")]

    # Already with the advertiser.
    r = client.post(f"/api/v1/admin/requests/{request.id}/forward", headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Invalid state transition"


def test_return_requires_feedback_and_sends_creatives_back(client):
    request = run(create_request(creatives=2))
    headers = _admin()

    r = client.post(f"/api/v1/admin/requests/{request.id}/return", json={}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Feedback is required"

    r = client.post(
        f"/api/v1/admin/requests/{request.id}/return", json={"feedback": "Logo is blurry"}, headers=headers
    )
    assert r.status_code == 200
    assert r.json()["status"] == "sent-back"
    assert r.json()["approval_stage"] == "admin"

    row = run(get(CreativeRequest, request.id))
    assert row.admin_comments == "Logo is blurry"
    assert row.admin_status == "rejected"
    assert {c.status for c in run(all_rows(Creative))} == {"sent-back"}


def test_full_approval_cycle_finalizes_on_second_forward(client):
    advertiser = run(create_advertiser())
    request = run(create_request(advertiser=advertiser))
    admin = _admin()
    adv = _advertiser(advertiser)

    assert client.post(f"/api/v1/admin/requests/{request.id}/forward", headers=admin).status_code == 204

    r = client.post(f"/api/v1/advertiser/responses/{request.id}/approve", json={"comments": "Looks good"}, headers=adv)
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "id": str(request.id),
        "status": "pending",
        "approval_stage": "admin",
        "advertiser_status": "approved",
    }

    assert client.post(f"/api/v1/admin/requests/{request.id}/forward", headers=admin).status_code == 204
    row = run(get(CreativeRequest, request.id))
    assert (row.status, row.approval_stage) == ("approved", "completed")
    assert row.advertiser_comments == "Looks good"

    # Terminal.
    assert client.post(f"/api/v1/admin/requests/{request.id}/forward", headers=admin).status_code == 409
    history = client.get(f"/api/v1/admin/requests/{request.id}/history", headers=admin).json()
    assert [h["to_status"] for h in history] == ["pending", "pending", "approved"]


def test_advertiser_reject_and_send_back(client):
    advertiser = run(create_advertiser())
    rejected = run(create_request(advertiser=advertiser, status="pending", approval_stage="advertiser", advertiser_status="pending"))
    sent_back = run(create_request(advertiser=advertiser, status="pending", approval_stage="advertiser", advertiser_status="pending"))
    adv = _advertiser(advertiser)

    r = client.post(f"/api/v1/advertiser/responses/{rejected.id}/reject", headers=adv)
    assert r.status_code == 200
    assert (r.json()["status"], r.json()["approval_stage"], r.json()["advertiser_status"]) == ("rejected", "admin", "rejected")

    r = client.post(f"/api/v1/advertiser/responses/{sent_back.id}/send-back", json={}, headers=adv)
    assert r.status_code == 400
    assert r.json()["detail"] == "Reason is required"

    r = client.post(f"/api/v1/advertiser/responses/{sent_back.id}/send-back", json={"reason": "Wrong landing page"}, headers=adv)
    assert r.status_code == 200
    assert r.json()["status"] == "sent-back"
    assert r.json()["advertiser_status"] == "sent_back"
    assert run(get(CreativeRequest, sent_back.id)).advertiser_comments == "Wrong landing page"

    # Responding twice is not allowed.
    assert client.post(f"/api/v1/advertiser/responses/{rejected.id}/approve", headers=adv).status_code == 409


def test_advertiser_action_endpoint(client):
    advertiser = run(create_advertiser())
    request = run(create_request(advertiser=advertiser, status="pending", approval_stage="advertiser", advertiser_status="pending"))
    adv = _advertiser(advertiser)

    r = client.post(
        "/api/v1/advertiser/responses", json={"request_id": str(request.id), "action": "REJECT"}, headers=adv
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Comments are required when rejecting"

    r = client.post(
        "/api/v1/advertiser/responses",
        json={"request_id": str(request.id), "action": "APPROVE", "comments": "Ship it"},
        headers=adv,
    )
    assert r.status_code == 200
    assert r.json()["advertiser_status"] == "approved"


def test_advertisers_only_see_and_act_on_their_own_requests(client):
    mine = run(create_advertiser(name="Mine", contact_email="mine@adv.example.com"))
    theirs = run(create_advertiser(name="Theirs", contact_email="theirs@adv.example.com"))
    own = run(create_request(advertiser=mine, status="pending", approval_stage="advertiser", advertiser_status="pending"))
    other = run(create_request(advertiser=theirs, status="pending", approval_stage="advertiser", advertiser_status="pending"))
    adv = _advertiser(mine)

    r = client.get("/api/v1/advertiser/responses", headers=adv)
    assert r.status_code == 200
    assert [i["id"] for i in r.json()["data"]] == [str(own.id)]

    r = client.post(f"/api/v1/advertiser/responses/{other.id}/approve", headers=adv)
    assert r.status_code == 404
    assert run(get(CreativeRequest, other.id)).advertiser_status == "pending"


def test_advertiser_without_profile_gets_404(client):
    headers = run(auth_headers_for(email="orphan@adv.example.com", role="advertiser"))
    r = client.get("/api/v1/advertiser/responses", headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Advertiser profile not found"


def test_auto_transition_moves_stale_new_requests(client, cron_headers):
    stale = run(create_request(submitted_at=utcnow() - timedelta(days=20)))
    fresh = run(create_request())

    r = client.get("/api/v1/cron/auto-transition-requests", headers=cron_headers)
    assert r.status_code == 200
    assert r.json() == {"count": 1, "ids": [str(stale.id)]}

    assert run(get(CreativeRequest, stale.id)).status == "pending"
    assert run(get(CreativeRequest, fresh.id)).status == "new"
