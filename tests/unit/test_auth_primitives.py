import time

import jwt
import pytest

from app.auth.passwords import hash_password, password_problems, verify_password
from app.settings import parse_duration, settings
from app.tokens import ALGORITHM, TokenError, decode_access, make_access, make_opaque_token


def test_hash_and_verify():
    hashed = hash_password("Secret!23")
    assert hashed != "Secret!23"
    assert hashed.startswith("$2")
    assert verify_password("Secret!23", hashed)
    assert not verify_password("secret!23", hashed)


@pytest.mark.parametrize("stored", [None, "", "not-a-hash"])
def test_verify_rejects_missing_or_malformed_hash(stored):
    assert verify_password("Secret!23", stored) is False


@pytest.mark.parametrize(
    "password,expected",
    [
        ("Secret!23", []),
        ("Ab!", ["Password must be at least 6 characters"]),
        ("secret!23", ["Password must contain at least one capital letter"]),
        ("Secret123", ["Password must contain at least one special character"]),
        (
            "abc",
            [
                "Password must be at least 6 characters",
                "Password must contain at least one capital letter",
                "Password must contain at least one special character",
            ],
        ),
    ],
)
def test_password_problems(password, expected):
    assert password_problems(password) == expected


def test_access_token_round_trip():
    token = make_access(user_id=7, email="a@b.co", role="developer")
    claims = decode_access(token)
    assert claims["userId"] == 7
    assert claims["email"] == "a@b.co"
    assert claims["role"] == "developer"
    assert claims["exp"] - claims["iat"] == settings.jwt_ttl_seconds


def test_tokens_are_unique():
    a = make_access(user_id=1, email="a@b.co", role="client")
    b = make_access(user_id=1, email="a@b.co", role="client")
    assert a != b


def test_expired_token_is_rejected():
    token = make_access(user_id=1, email="a@b.co", role="client", ttl_s=-10)
    with pytest.raises(TokenError):
        decode_access(token)


def test_wrong_key_is_rejected():
    token = make_access(user_id=1, email="a@b.co", role="client", key="x" * 40)
    with pytest.raises(TokenError):
        decode_access(token)


def test_token_without_user_id_is_rejected():
    now = int(time.time())
    token = jwt.encode(
        {"email": "a@b.co", "iat": now, "exp": now + 60},
        settings.JWT_SECRET,
        algorithm=ALGORITHM,
    )
    with pytest.raises(TokenError):
        decode_access(token)


def test_non_integer_user_id_is_rejected():
    now = int(time.time())
    token = jwt.encode(
        {"userId": "7", "iat": now, "exp": now + 60},
        settings.JWT_SECRET,
        algorithm=ALGORITHM,
    )
    with pytest.raises(TokenError):
        decode_access(token)


def test_opaque_tokens():
    token = make_opaque_token()
    assert len(token) == 64
    int(token, 16)
    assert token != make_opaque_token()


@pytest.mark.parametrize(
    "value,seconds",
    [("7d", 7 * 86400), ("12h", 43200), ("30m", 1800), ("45s", 45), ("3600", 3600), (90, 90)],
)
def test_parse_duration(value, seconds):
    assert parse_duration(value) == seconds


def test_parse_duration_falls_back_on_garbage():
    assert parse_duration("soon", default=5) == 5
