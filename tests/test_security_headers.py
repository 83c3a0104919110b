def test_docs_accessible(client):
    r = client.get("/docs")
    assert r.status_code == 200


def test_health_reports_cache(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["cache"]["size"] == 0


def test_cors_preflight_allows_configured_origin(client):
    r = client.options(
        "/token",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_protected_routes_require_bearer_token(client):
    for path in ("/companies", "/branches", "/employees", "/tasks", "/reports", "/messages/inbox", "/profile/me"):
        r = client.get(path)
        assert r.status_code == 401, path
        assert r.headers.get("www-authenticate") == "Bearer"
