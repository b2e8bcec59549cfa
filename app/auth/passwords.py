from __future__ import annotations

import re

from passlib.context import CryptContext

_pwd = CryptContext(
    schemes=["bcrypt", "pbkdf2_sha256"], deprecated="auto", bcrypt__rounds=10
)

_CAPITAL_RE = re.compile(r"[A-Z]")
_SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

MIN_LENGTH = 6


def hash_password(password: str) -> str:
    return _pwd.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return _pwd.verify(password, hashed)
    except ValueError:
        # Unknown or malformed hash
        return False


def password_problems(password: str) -> list[str]:
    """Human-readable reasons ``password`` fails the signup policy."""
    problems = []
    if len(password) < MIN_LENGTH:
        problems.append(f"Password must be at least {MIN_LENGTH} characters")
    if not _CAPITAL_RE.search(password):
        problems.append("Password must contain at least one capital letter")
    if not _SPECIAL_RE.search(password):
        problems.append("Password must contain at least one special character")
    return problems
