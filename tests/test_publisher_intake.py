from src.models.creative import Creative
from src.models.creative_request import CreativeRequest
from src.models.publisher import Publisher
from tests.factories import all_rows, create_advertiser, create_offer, run


def _submission(offer_id, **overrides):
    body = {
        "offer_id": str(offer_id),
        "first_name": "Pat",
        "last_name": "Publisher",
        "email": "Pat@Publisher.Example.com",
        "company_name": "Pat Media",
        "telegram_id": "123456789",
        "creative_type": "email",
        "priority": "high",
        "from_lines": "Deals Team\nSummer Team\n",
        "subject_lines": "Save 20% today",
        "files": [
            {"name": "banner.png", "url": "https://files.test/banner.png", "type": "image/png", "size": 1024},
            {
                "name": "body.html",
                "url": "https://files.test/body.html",
                "type": "text/html",
                "metadata": {"subject_lines": "Last chance\nFinal hours"},
            },
        ],
    }
    body.update(overrides)
    return body


def test_submit_creates_request_creatives_and_publisher(client):
    advertiser = run(create_advertiser())
    offer = run(create_offer(advertiser=advertiser))

    r = client.post("/api/v1/submit", json=_submission(offer.id))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert len(body["tracking_code"]) == 10

    [request] = run(all_rows(CreativeRequest))
    assert str(request.id) == body["request_id"]
    assert request.status == "new"
    assert request.approval_stage == "admin"
    assert request.admin_status == "pending"
    assert request.priority == "High Priority"
    assert request.email == "pat@publisher.example.com"
    assert request.publisher_name == "Pat Publisher"
    assert request.advertiser_id == advertiser.id
    assert request.offer_name == "Summer Sale"
    assert request.creative_count == 2
    assert request.from_lines_count == 2
    assert request.subject_lines_count == 3

    creatives = sorted(run(all_rows(Creative)), key=lambda c: c.name)
    assert [c.format for c in creatives] == ["image", "html"]
    assert {c.status for c in creatives} == {"pending"}

    [publisher] = run(all_rows(Publisher))
    assert publisher.contact_email == "pat@publisher.example.com"
    assert publisher.name == "Pat Media"


def test_track_by_code_and_by_id(client):
    offer = run(create_offer())
    submitted = client.post("/api/v1/submit", json=_submission(offer.id)).json()

    by_code = client.get("/api/v1/track", params={"code": submitted["tracking_code"].lower()})
    assert by_code.status_code == 200
    assert by_code.json()["id"] == submitted["request_id"]
    assert len(by_code.json()["files"]) == 2

    by_id = client.get("/api/v1/track", params={"id": submitted["request_id"]})
    assert by_id.status_code == 200
    assert by_id.json()["tracking_code"] == submitted["tracking_code"]
    assert by_id.json()["status"] == "new"


def test_track_requires_a_lookup_key_and_a_known_request(client):
    assert client.get("/api/v1/track").status_code == 400
    assert client.get("/api/v1/track", params={"code": "NOPE000000"}).status_code == 404


def test_submit_rejects_unknown_offer_and_bad_telegram_id(client):
    offer = run(create_offer())

    r = client.post("/api/v1/submit", json=_submission("00000000-0000-0000-0000-000000000000"))
    assert r.status_code == 404
    assert r.json()["detail"] == "Offer not found"

    r = client.post("/api/v1/submit", json=_submission(offer.id, telegram_id="@someone"))
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid Telegram ID"

    r = client.post("/api/v1/submit", json=_submission(offer.id, email="not-an-email"))
    assert r.status_code == 422

    r = client.post("/api/v1/submit", json=_submission(offer.id, email="a@@b.example.com"))
    assert r.status_code == 422

    assert run(all_rows(CreativeRequest)) == []


def test_blank_telegram_id_is_accepted(client):
    offer = run(create_offer())
    r = client.post("/api/v1/submit", json=_submission(offer.id, telegram_id="  "))
    assert r.status_code == 201
    [request] = run(all_rows(CreativeRequest))
    assert request.telegram_id is None


def test_idempotency_key_replays_the_first_response(client):
    offer = run(create_offer())
    headers = {"Idempotency-Key": "submit-1"}
    body = _submission(offer.id)

    first = client.post("/api/v1/submit", json=body, headers=headers)
    second = client.post("/api/v1/submit", json=body, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json() == first.json()
    assert len(run(all_rows(CreativeRequest))) == 1


def test_idempotency_key_reused_with_a_different_body_conflicts(client):
    offer = run(create_offer())
    headers = {"Idempotency-Key": "submit-2"}

    assert client.post("/api/v1/submit", json=_submission(offer.id), headers=headers).status_code == 201
    r = client.post("/api/v1/submit", json=_submission(offer.id, creative_type="display"), headers=headers)

    assert r.status_code == 422
    assert "Idempotency-Key" in r.json()["detail"]
    assert len(run(all_rows(CreativeRequest))) == 1


def test_non_string_file_metadata_is_not_counted(client):
    offer = run(create_offer())
    body = _submission(offer.id)
    body["files"][1]["metadata"] = {"subject_lines": ["Last chance", "Final hours"], "from_lines": 3}

    r = client.post("/api/v1/submit", json=body)
    assert r.status_code == 201, r.text

    [request] = run(all_rows(CreativeRequest))
    assert request.from_lines_count == 2
    assert request.subject_lines_count == 1
