def test_security_headers_on_every_response(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["x-frame-options"] == "DENY"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["referrer-policy"] == "strict-origin-when-cross-origin"
    assert "frame-ancestors 'none'" in response.headers["content-security-policy"]


def test_api_responses_are_not_cached(client):
    response = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})

    assert response.headers["cache-control"] == "no-store"


def test_ready_checks_the_database(client):
    assert client.get("/ready").json() == {"status": "ready"}
