import json

import pytest

from tests.helpers import load_user, signup

CLIENT_PROFILE = {
    "name": "Ama Mensah",
    "phone": "+233 24 123 4567",
    "location": "Accra",
    "bio": "Planning a family home",
    "preferred_contact": "phone",
}

DEVELOPER_PROFILE = {
    "name": "Kwame Builders",
    "bio": "Twenty years in residential construction",
    "company_type": "company",
    "years_experience": 20,
    "project_types": ["residential", "commercial"],
    "preferred_cities": ["Accra", "Tema"],
    "budget_range": "100k+",
    "working_style": "hands-on",
    "availability": "next month",
    "specializations": ["roofing", "masonry"],
}


@pytest.fixture
def client_user(client, sent_emails):
    return signup(client, role="client")


@pytest.fixture
def developer_user(client, sent_emails):
    return signup(client, intent="developer-setup")


def _put(client, headers, body):
    return client.put("/api/auth/me", json=body, headers=headers)


def test_complete_client_profile_sets_setup_completed(client, client_user):
    user, headers = client_user
    r = _put(client, headers, CLIENT_PROFILE)
    assert r.status_code == 200
    data = r.json()
    assert data["message"] == "Profile updated successfully"
    assert data["user"]["setup_completed"] is True
    assert data["user"]["phone"] == CLIENT_PROFILE["phone"]
    assert load_user(client, user["id"]).setup_completed is True


def test_partial_client_profile_stays_incomplete(client, client_user):
    _, headers = client_user
    body = {k: v for k, v in CLIENT_PROFILE.items() if k != "bio"}
    r = _put(client, headers, body)
    assert r.status_code == 200
    assert r.json()["user"]["setup_completed"] is False


def test_completion_accumulates_across_updates(client, client_user):
    _, headers = client_user
    first = {k: v for k, v in CLIENT_PROFILE.items() if k != "preferred_contact"}
    assert _put(client, headers, first).json()["user"]["setup_completed"] is False

    r = _put(client, headers, {"preferred_contact": "email"})
    assert r.json()["user"]["setup_completed"] is True
    assert r.json()["user"]["name"] == CLIENT_PROFILE["name"]


def test_complete_developer_profile(client, developer_user):
    _, headers = developer_user
    r = _put(client, headers, DEVELOPER_PROFILE)
    assert r.status_code == 200
    assert r.json()["user"]["setup_completed"] is True


@pytest.mark.parametrize("field", ["project_types", "preferred_cities", "specializations"])
def test_developer_with_empty_array_stays_incomplete(client, developer_user, field):
    _, headers = developer_user
    r = _put(client, headers, {**DEVELOPER_PROFILE, field: []})
    assert r.status_code == 200
    assert r.json()["user"]["setup_completed"] is False
    assert r.json()["user"][field] == "[]"


def test_developer_missing_field_stays_incomplete(client, developer_user):
    _, headers = developer_user
    body = dict(DEVELOPER_PROFILE)
    del body["availability"]
    assert _put(client, headers, body).json()["user"]["setup_completed"] is False


def test_force_flag_completes_regardless(client, developer_user):
    user, headers = developer_user
    r = _put(client, headers, {"name": "Just a name", "setup_completed": True})
    assert r.status_code == 200
    assert r.json()["user"]["setup_completed"] is True
    assert load_user(client, user["id"]).setup_completed is True


def test_setup_completed_is_never_cleared(client, client_user):
    _, headers = client_user
    _put(client, headers, CLIENT_PROFILE)
    r = _put(client, headers, {"bio": "", "setup_completed": False})
    assert r.status_code == 200
    assert r.json()["user"]["setup_completed"] is True


def test_list_and_string_arrays_store_identically(client, sent_emails):
    first, h1 = signup(client, role="developer")
    second, h2 = signup(client, role="developer")

    _put(client, h1, {"project_types": ["residential", "commercial"]})
    _put(client, h2, {"project_types": '["residential","commercial"]'})

    a = load_user(client, first["id"]).project_types
    b = load_user(client, second["id"]).project_types
    assert a == b
    assert json.loads(a) == ["residential", "commercial"]


def test_non_string_arrays_store_like_their_serialized_form(client, sent_emails):
    first, h1 = signup(client, role="developer")
    second, h2 = signup(client, role="developer")

    assert _put(client, h1, {"specializations": [1, 2]}).status_code == 200
    assert _put(client, h2, {"specializations": "[1, 2]"}).status_code == 200

    a = load_user(client, first["id"]).specializations
    b = load_user(client, second["id"]).specializations
    assert a == b == "[1, 2]"


def test_numeric_contact_fields_are_stored_as_text(client, client_user):
    user, headers = client_user
    r = _put(client, headers, {"phone": 5551234, "location": 12.0})
    assert r.status_code == 200
    assert r.json()["user"]["phone"] == "5551234"
    row = load_user(client, user["id"])
    assert row.phone == "5551234"
    assert row.location == "12"


def test_years_experience_numeric_string_is_accepted(client, developer_user):
    _, headers = developer_user
    r = _put(client, headers, {"years_experience": "7"})
    assert r.status_code == 200
    assert r.json()["user"]["years_experience"] == 7


def test_years_experience_garbage_is_rejected_before_any_write(client, developer_user):
    user, headers = developer_user
    r = _put(client, headers, {"years_experience": "not-a-number", "name": "Changed"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation error"
    assert body["details"][0]["field"] == "years_experience"
    assert load_user(client, user["id"]).name is None


def test_unknown_fields_are_ignored(client, client_user):
    user, headers = client_user
    r = _put(client, headers, {"role": "admin", "email": "x@y.co", "bio": "hi"})
    assert r.status_code == 200
    row = load_user(client, user["id"])
    assert row.role == "client"
    assert row.email == user["email"]
    assert row.bio == "hi"


def test_profile_update_requires_auth(client):
    assert client.put("/api/auth/me", json={"bio": "x"}).status_code == 401


def test_storage_failure_returns_500(client, client_user, monkeypatch):
    from sqlalchemy.exc import OperationalError

    import app.api.auth as auth_api

    _, headers = client_user

    async def _boom(*args, **kwargs):
        raise OperationalError("UPDATE users", {}, Exception("disk I/O error"))

    monkeypatch.setattr(auth_api, "update_profile", _boom)
    r = _put(client, headers, {"bio": "x"})
    assert r.status_code == 500
    assert r.json() == {"error": "An error occurred while updating your profile"}
