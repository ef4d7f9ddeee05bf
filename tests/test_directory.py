import uuid

from src.models.advertiser import Advertiser
from src.models.audit_log import AuditLog
from src.models.offer import Offer
from src.models.publisher import Publisher
from tests.factories import all_rows, auth_headers_for, create_advertiser, create_offer, get, run


def _admin():
    return run(auth_headers_for(email="admin@example.com", role="admin"))


def test_admin_creates_lists_and_renames_an_advertiser(client):
    headers = _admin()

    r = client.post(
        "/api/v1/admin/advertisers",
        json={"name": "Acme Ads", "contact_email": " Ads@Acme.Example.com ", "everflow_advertiser_id": "7"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["contact_email"] == "ads@acme.example.com"
    assert created["status"] == "active"

    dup = client.post(
        "/api/v1/admin/advertisers", json={"name": "Other", "everflow_advertiser_id": "7"}, headers=headers
    )
    assert dup.status_code == 409

    offer = run(create_offer(advertiser=run(get(Advertiser, uuid.UUID(created["id"])))))

    r = client.put(f"/api/v1/admin/advertisers/{created['id']}", json={"name": "Acme Media"}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Acme Media"
    assert run(get(Offer, offer.id)).advertiser_name == "Acme Media"

    listing = client.get("/api/v1/admin/advertisers", params={"search": "media"}, headers=headers).json()
    assert listing["meta"]["total"] == 1
    assert listing["data"][0]["id"] == created["id"]

    actions = {a.action for a in run(all_rows(AuditLog))}
    assert {"advertiser.created", "advertiser.updated"} <= actions


def test_advertiser_rejects_a_malformed_contact_email(client):
    payload = {"name": "Acme", "contact_email": "not-an-email"}
    r = client.post("/api/v1/admin/advertisers", json=payload, headers=_admin())
    assert r.status_code == 422


def test_deleting_an_advertiser_deactivates_it(client):
    headers = _admin()
    advertiser = run(create_advertiser())

    r = client.delete(f"/api/v1/admin/advertisers/{advertiser.id}", headers=headers)
    assert r.status_code == 204
    assert run(get(Advertiser, advertiser.id)).status == "inactive"

    active = client.get("/api/v1/admin/advertisers", params={"status": "active"}, headers=headers).json()
    assert active["meta"]["total"] == 0


def test_publisher_crud(client):
    headers = _admin()

    r = client.post(
        "/api/v1/admin/publishers",
        json={"name": "Deals Daily", "contact_email": "ops@deals.example.com", "telegram_id": "123456"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    publisher_id = r.json()["id"]

    bad = client.post("/api/v1/admin/publishers", json={"name": "X", "telegram_id": "@deals"}, headers=headers)
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid Telegram ID"

    r = client.put(f"/api/v1/admin/publishers/{publisher_id}", json={"status": "inactive"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "inactive"
    assert r.json()["name"] == "Deals Daily"

    fetched = client.get(f"/api/v1/admin/publishers/{publisher_id}", headers=headers).json()
    assert fetched["telegram_id"] == "123456"

    assert client.delete(f"/api/v1/admin/publishers/{publisher_id}", headers=headers).status_code == 204
    assert run(get(Publisher, uuid.UUID(publisher_id))).status == "inactive"


def test_manual_offer_copies_its_advertiser(client):
    headers = _admin()
    advertiser = run(create_advertiser(everflow_advertiser_id="7"))

    r = client.post(
        "/api/v1/admin/offers",
        json={"offer_name": "Summer Sale", "advertiser_id": str(advertiser.id)},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["created_method"] == "Manually"
    assert body["advertiser_name"] == "Acme Ads"
    assert body["status"] == "Active"
    assert body["created_by"] is not None

    offer = run(get(Offer, uuid.UUID(body["id"])))
    assert offer.everflow_advertiser_id == "7"
    assert [a.action for a in run(all_rows(AuditLog, AuditLog.action == "offer.created"))] == ["offer.created"]


def test_offer_create_requires_a_known_advertiser_and_unique_everflow_id(client):
    headers = _admin()
    advertiser = run(create_advertiser())
    run(create_offer(advertiser=advertiser, everflow_offer_id="101"))

    missing = client.post(
        "/api/v1/admin/offers", json={"offer_name": "X", "advertiser_id": str(uuid.uuid4())}, headers=headers
    )
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Advertiser not found"

    dup = client.post(
        "/api/v1/admin/offers",
        json={"offer_name": "X", "advertiser_id": str(advertiser.id), "everflow_offer_id": "101"},
        headers=headers,
    )
    assert dup.status_code == 409


def test_offer_update_moves_it_to_another_advertiser(client):
    headers = _admin()
    first = run(create_advertiser())
    second = run(create_advertiser(name="Beta Brands", contact_email="beta@brands.example.com"))
    offer = run(create_offer(advertiser=first))

    r = client.put(
        f"/api/v1/admin/offers/{offer.id}",
        json={"offer_name": "Autumn Sale", "advertiser_id": str(second.id), "visibility": "Hidden"},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["offer_name"] == "Autumn Sale"
    assert body["advertiser_id"] == str(second.id)
    assert body["advertiser_name"] == "Beta Brands"
    assert body["visibility"] == "Hidden"
    assert body["updated_by"] is not None


def test_deleted_offers_leave_the_active_lists(client):
    headers = _admin()
    advertiser = run(create_advertiser())
    synced = run(create_offer(advertiser=advertiser, offer_name="Synced", everflow_offer_id="101"))
    manual = run(create_offer(advertiser=advertiser, offer_name="Manual"))

    public = client.get("/api/v1/offers")
    assert public.status_code == 200
    by_name = {o["offer_name"]: o for o in public.json()["data"]}
    assert by_name["Synced"]["offer_id"] == "101"
    assert by_name["Manual"]["offer_id"] == str(manual.id)

    assert client.delete(f"/api/v1/admin/offers/{synced.id}", headers=headers).status_code == 204
    assert run(get(Offer, synced.id)).status == "Inactive"

    assert [o["offer_name"] for o in client.get("/api/v1/offers").json()["data"]] == ["Manual"]

    admin_active = client.get("/api/v1/admin/offers", headers=headers).json()
    assert [o["offer_name"] for o in admin_active["data"]] == ["Manual"]
    inactive = client.get("/api/v1/admin/offers", params={"status": "Inactive"}, headers=headers).json()
    assert [o["offer_name"] for o in inactive["data"]] == ["Synced"]

    searched = client.get("/api/v1/admin/offers", params={"search": "manu"}, headers=headers).json()
    assert searched["meta"]["total"] == 1


def test_directory_routes_are_admin_only(client):
    advertiser_headers = run(auth_headers_for(email="adv@acme.example.com", role="advertiser"))

    for path in ("/api/v1/admin/offers", "/api/v1/admin/advertisers", "/api/v1/admin/publishers"):
        assert client.get(path).status_code == 401
        r = client.get(path, headers=advertiser_headers)
        assert r.status_code == 403
        assert r.json()["detail"] == "Admin access required"


def test_unknown_directory_ids_are_not_found(client):
    headers = _admin()

    assert client.get("/api/v1/admin/offers/not-a-uuid", headers=headers).status_code == 404
    assert client.get(f"/api/v1/admin/advertisers/{uuid.uuid4()}", headers=headers).status_code == 404
    r = client.put(f"/api/v1/admin/publishers/{uuid.uuid4()}", json={"name": "X"}, headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Publisher not found"
