from tests.helpers import STRONG_PASSWORD, load_user, signup, unique_email


def test_signup_defaults_to_client(client, sent_emails):
    email = unique_email("client")
    r = client.post("/api/auth/signup", json={"email": email, "password": STRONG_PASSWORD})
    assert r.status_code == 201
    data = r.json()
    assert data["token"]
    assert data["user"]["email"] == email
    assert data["user"]["role"] == "client"
    assert data["user"]["email_verified"] is False
    assert data["user"]["setup_completed"] is False
    assert sent_emails[0][:2] == ("verify", email)


def test_signup_stores_empty_arrays(client, sent_emails):
    user, _ = signup(client, role="developer")
    row = load_user(client, user["id"])
    assert row.project_types == "[]"
    assert row.preferred_cities == "[]"
    assert row.languages == "[]"
    assert row.specializations == "[]"


def test_signup_intent_query_forces_developer(client, sent_emails):
    r = client.post(
        "/api/auth/signup?intent=developer-setup",
        json={"email": unique_email("dev"), "password": STRONG_PASSWORD, "role": "client"},
    )
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "developer"


def test_signup_intent_body_forces_developer(client, sent_emails):
    user, _ = signup(client, intent="developer-setup")
    assert user["role"] == "developer"


def test_signup_duplicate_email(client, sent_emails):
    email = unique_email("dup")
    signup(client, email=email)
    r = client.post("/api/auth/signup", json={"email": email, "password": STRONG_PASSWORD})
    assert r.status_code == 400
    assert r.json() == {"error": "An account with this email already exists"}


def test_signup_weak_password_is_validation_error(client, sent_emails):
    r = client.post("/api/auth/signup", json={"email": unique_email(), "password": "weak"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation error"
    assert body["details"][0]["field"] == "password"
    assert sent_emails == []


def test_signup_invalid_email(client, sent_emails):
    r = client.post("/api/auth/signup", json={"email": "nope", "password": STRONG_PASSWORD})
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "email"


def test_login_and_me(client, sent_emails):
    email = unique_email("login")
    signup(client, email=email)

    r = client.post("/api/auth/login", json={"email": email, "password": STRONG_PASSWORD})
    assert r.status_code == 200
    token = r.json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["email"] == email

    row = load_user(client, me.json()["user"]["id"])
    assert row.last_login is not None


def test_login_wrong_password(client, sent_emails):
    email = unique_email("login")
    signup(client, email=email)
    r = client.post("/api/auth/login", json={"email": email, "password": "Wrong!123"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid email or password"}


def test_login_unknown_email(client):
    r = client.post(
        "/api/auth/login", json={"email": unique_email("ghost"), "password": STRONG_PASSWORD}
    )
    assert r.status_code == 401


def test_me_requires_token(client):
    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Access token required"}
    assert r.headers["WWW-Authenticate"] == "Bearer"


def test_me_rejects_garbage_token(client):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 403
    assert r.json() == {"error": "Invalid token"}


def test_logout_revokes_session(client, sent_emails):
    _, headers = signup(client)
    assert client.get("/api/auth/me", headers=headers).status_code == 200

    r = client.post("/api/auth/logout", headers=headers)
    assert r.status_code == 200

    r = client.get("/api/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid or expired session"}


def test_logout_without_token_is_ok(client):
    assert client.post("/api/auth/logout").status_code == 200


def test_verify_email_flow(client, sent_emails):
    user, _ = signup(client)
    token = sent_emails[-1][2]

    r = client.post("/api/auth/verify-email", json={"token": token})
    assert r.status_code == 200
    data = r.json()
    assert data["user"]["email_verified"] is True
    assert client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"}
    ).json()["user"]["email_verified"] is True

    # Tokens are single use
    again = client.post("/api/auth/verify-email", json={"token": token})
    assert again.status_code == 400
    assert again.json() == {"error": "Invalid or expired verification token"}


def test_verify_email_requires_token(client):
    r = client.post("/api/auth/verify-email", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "Verification token is required"}


def test_resend_verification(client, sent_emails):
    email = unique_email("resend")
    signup(client, email=email)
    first = sent_emails[-1][2]

    r = client.post("/api/auth/resend-verification", json={"email": email})
    assert r.status_code == 200
    second = sent_emails[-1][2]
    assert second != first

    # The older unused token was replaced
    assert client.post("/api/auth/verify-email", json={"token": first}).status_code == 400
    assert client.post("/api/auth/verify-email", json={"token": second}).status_code == 200

    r = client.post("/api/auth/resend-verification", json={"email": email})
    assert r.status_code == 400
    assert r.json() == {"error": "Email is already verified"}


def test_resend_verification_unknown_email(client):
    r = client.post("/api/auth/resend-verification", json={"email": unique_email("ghost")})
    assert r.status_code == 404


def test_resend_verification_reports_send_failure(client, sent_emails, monkeypatch):
    import app.api.auth as auth_api

    email = unique_email("fail")
    signup(client, email=email)

    async def _fail(to, token):
        return False

    monkeypatch.setattr(auth_api, "send_verification_email", _fail)
    r = client.post("/api/auth/resend-verification", json={"email": email})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to send verification email"}


def test_forgot_password_does_not_enumerate(client, sent_emails):
    email = unique_email("forgot")
    signup(client, email=email)

    known = client.post("/api/auth/forgot-password", json={"email": email})
    unknown = client.post("/api/auth/forgot-password", json={"email": unique_email("ghost")})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert [kind for kind, *_ in sent_emails].count("reset") == 1


def test_reset_password_flow(client, sent_emails):
    email = unique_email("reset")
    signup(client, email=email)
    client.post("/api/auth/forgot-password", json={"email": email})
    token = sent_emails[-1][2]

    weak = client.post("/api/auth/reset-password", json={"token": token, "password": "short"})
    assert weak.status_code == 400

    r = client.post(
        "/api/auth/reset-password", json={"token": token, "password": "NewPass!9"}
    )
    assert r.status_code == 200
    assert r.json() == {"message": "Password reset successfully"}

    old = client.post("/api/auth/login", json={"email": email, "password": STRONG_PASSWORD})
    assert old.status_code == 401
    new = client.post("/api/auth/login", json={"email": email, "password": "NewPass!9"})
    assert new.status_code == 200

    reused = client.post(
        "/api/auth/reset-password", json={"token": token, "password": "Other!99"}
    )
    assert reused.status_code == 400
    assert reused.json() == {"error": "Invalid or expired reset token"}


def test_reset_password_requires_fields(client):
    r = client.post("/api/auth/reset-password", json={"token": "abc"})
    assert r.status_code == 400
    assert r.json() == {"error": "Token and password are required"}
