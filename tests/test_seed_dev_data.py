import os

from src.models.advertiser import Advertiser
from src.models.offer import Offer
from src.models.user import User
from src.scripts.seed_dev_data import DEMO_PASSWORD, seed_dev_data
from tests.factories import all_rows, run


def test_seed_dev_data_is_idempotent_and_creates_demo_users_advertiser_and_offer():
    database_url = os.environ["DATABASE_URL"]

    # Run twice to assert idempotency.
    r1 = run(seed_dev_data(database_url))
    r2 = run(seed_dev_data(database_url))
    assert r1 == r2

    users = {u.email: u for u in run(all_rows(User))}
    assert set(users) == {"admin@demo.example.com", "advertiser@demo.example.com"}
    assert users["admin@demo.example.com"].role == "admin"
    assert users["advertiser@demo.example.com"].role == "advertiser"

    [advertiser] = run(all_rows(Advertiser))
    assert advertiser.id == r1.advertiser_id
    assert advertiser.contact_email == "advertiser@demo.example.com"

    [offer] = run(all_rows(Offer))
    assert (offer.id, offer.advertiser_id) == (r1.offer_id, r1.advertiser_id)


def test_seeded_advertiser_can_sign_in_and_see_responses(client):
    run(seed_dev_data(os.environ["DATABASE_URL"]))

    r = client.post("/api/v1/auth/sign-in", json={"email": "advertiser@demo.example.com", "password": DEMO_PASSWORD})
    assert r.status_code == 200
    headers = {"Authorization": f"Bearer {r.json()['token']}"}

    r = client.get("/api/v1/advertiser/responses", headers=headers)
    assert r.status_code == 200
    assert r.json()["meta"]["total"] == 0
