from __future__ import annotations

import logging

from app.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

MIN_JWT_SECRET_LENGTH = 32
_RELAXED_ENVS = {"dev", "local", "test", "ci"}


def enforce_jwt_strength(cfg: Settings | None = None) -> None:
    """Refuse to boot outside dev/test with a short JWT secret."""
    cfg = cfg or default_settings
    secret = cfg.JWT_SECRET or ""
    env = cfg.ENV.strip().lower()

    if len(secret) >= MIN_JWT_SECRET_LENGTH:
        logger.info("JWT secret: OK (len=%d)", len(secret))
        return

    if env in _RELAXED_ENVS:
        logger.warning(
            "JWT secret: WEAK (len=%d), allowed in dev/tests only", len(secret)
        )
        return

    raise RuntimeError(
        f"JWT_SECRET too weak (need >= {MIN_JWT_SECRET_LENGTH} characters)"
    )
