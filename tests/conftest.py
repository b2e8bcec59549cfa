"""Shared fixtures.

The environment is pinned before anything under ``app`` is imported so the
settings singleton picks up a throwaway SQLite database and uploads dir.
"""

import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="buildtrust_tests_"))

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'test.db'}"
os.environ["UPLOADS_DIR"] = str(_TMP / "uploads")
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256!!"
os.environ["EMAIL_DRY_RUN"] = "1"
os.environ["AUDIT_DRAIN_DELAY_MS"] = "0"
os.environ["AUDIT_ITEM_PAUSE_MS"] = "0"
os.environ.pop("EMAIL_API_URL", None)
os.environ.pop("BACKEND_URL", None)

import pytest  # noqa: E402
from starlette.testclient import TestClient  # noqa: E402

from app.application import build_application  # noqa: E402
from app.audit.queue import AuditQueue  # noqa: E402


@pytest.fixture
def uploads_dir() -> Path:
    return Path(os.environ["UPLOADS_DIR"])


@pytest.fixture
def audit_queue() -> AuditQueue:
    return AuditQueue(drain_delay=0, item_pause=0)


@pytest.fixture
def app(audit_queue):
    return build_application(audit_queue=audit_queue)


@pytest.fixture
def client(app):
    # Function-scope client so every test gets its own lifespan and loop
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture verification / reset tokens instead of mailing them."""
    import app.api.auth as auth_api

    outbox: list[tuple[str, str, str]] = []

    async def _verification(to, token):
        outbox.append(("verify", to, token))
        return True

    async def _reset(to, token):
        outbox.append(("reset", to, token))
        return True

    monkeypatch.setattr(auth_api, "send_verification_email", _verification)
    monkeypatch.setattr(auth_api, "send_password_reset_email", _reset)
    return outbox
