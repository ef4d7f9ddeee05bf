from tests.factories import auth_headers_for, run


def test_error_responses_include_request_id_in_body_and_header(client):
    r = client.get("/this-route-does-not-exist")
    assert r.status_code == 404

    payload = r.json()
    assert payload["request_id"], payload
    assert r.headers.get("x-request-id") == payload["request_id"]


def test_caller_request_id_is_echoed(client):
    r = client.get("/api/v1/ping", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 200
    assert r.json() == {"ping": "pong"}
    assert r.headers["x-request-id"] == "req-123"


def test_validation_errors_use_the_envelope(client):
    r = client.post("/api/v1/submit", json={"first_name": "Pat"}, headers={"X-Request-ID": "bad-body"})
    assert r.status_code == 422

    payload = r.json()
    assert payload["request_id"] == "bad-body"
    assert isinstance(payload["detail"], list)
    assert any(err["loc"][-1] == "offer_id" for err in payload["detail"])


def test_domain_errors_use_the_envelope(client):
    headers = run(auth_headers_for(email="admin@example.com", role="admin"))
    r = client.post(
        "/api/v1/admin/requests/00000000-0000-0000-0000-000000000000/forward",
        headers=headers,
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "Request not found"
    assert r.json()["request_id"]


def test_malformed_path_ids_read_as_not_found(client):
    headers = run(auth_headers_for(email="admin@example.com", role="admin"))
    r = client.get("/api/v1/admin/jobs/not-a-uuid", headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Job not found"
