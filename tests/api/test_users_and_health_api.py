from tests.helpers import make_admin, signup


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "message": "BuildTrust API is running"}
    assert r.headers["Cache-Control"] == "no-store"


def test_status_reports_database_and_audit(client):
    r = client.get("/api/status")
    assert r.status_code == 200
    body = r.json()
    assert body["database"] == "up"
    assert body["env"] == "test"
    audit = body["audit"]
    assert audit["enabled"] is True
    assert audit["running"] is True
    assert {"pending", "enqueued", "written", "failed", "dropped"} <= set(audit)


def test_users_list_is_admin_only(client, sent_emails):
    user, headers = signup(client)
    r = client.get("/api/users", headers=headers)
    assert r.status_code == 403
    assert r.json() == {"error": "Unauthorized"}

    make_admin(client, user["id"])
    r = client.get("/api/users", headers=headers)
    assert r.status_code == 200
    rows = r.json()
    [me] = [row for row in rows if row["id"] == user["id"]]
    assert set(me) == {"id", "email", "name", "role", "created_at"}
    assert me["role"] == "admin"
    assert "password" not in me


def test_users_list_requires_auth(client):
    assert client.get("/api/users").status_code == 401


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


def test_openapi_lists_every_area(client):
    paths = client.get("/openapi.json").json()["paths"]
    for path in (
        "/api/auth/signup",
        "/api/auth/me",
        "/api/users/{user_id}/documents",
        "/api/users/admin/documents",
        "/api/projects",
        "/api/projects/{project_id}/media",
        "/api/users",
        "/api/health",
    ):
        assert path in paths
