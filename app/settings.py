import logging
import re
from collections.abc import Iterable

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _split_csv(env_value: str | None, default: Iterable[str] = ()) -> list[str]:
    raw = (env_value or "").strip()
    if not raw:
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str | int, *, default: int = 7 * 86400) -> int:
    """Parse ``7d`` / ``12h`` / ``30m`` / ``3600`` into seconds."""
    if isinstance(value, int):
        return value
    m = _DURATION_RE.match(value or "")
    if not m:
        logger.warning("Unparseable duration %r, using %ss", value, default)
        return default
    return int(m.group(1)) * _DURATION_UNITS[m.group(2).lower()]


# ----------------------------------------------------------------------------
# Object settings
# ----------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    ENV: str = "dev"

    # Database: DATABASE_URL wins; otherwise compose a MySQL URL from parts
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "buildtrust"
    DB_POOL: str = "enabled"
    DB_POOL_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0

    # Auth
    JWT_SECRET: str = "change-me-in-production"
    JWT_EXPIRES_IN: str = "7d"
    SESSION_TTL_DAYS: int = 7
    VERIFICATION_TOKEN_TTL_HOURS: int = 24
    RESET_TOKEN_TTL_HOURS: int = 1

    # URLs
    FRONTEND_URL: str = "http://localhost:5173"
    BACKEND_URL: str | None = None
    CORS_ALLOW_ORIGINS: str = (
        "http://localhost:5173,http://localhost:3002,http://localhost:3001,"
        "http://localhost:8080"
    )

    # Uploads
    UPLOADS_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Outbound email
    EMAIL_API_URL: str | None = None
    EMAIL_DRY_RUN: bool = False
    HTTP_CLIENT_TIMEOUT: float = 10.0

    # Audit pipeline
    AUDIT_ENABLED: bool = True
    AUDIT_POLICY: str = "full"
    AUDIT_DRAIN_DELAY_MS: int = 1000
    AUDIT_ITEM_PAUSE_MS: int = 100
    AUDIT_QUEUE_MAXSIZE: int = 0
    AUDIT_SKIP_ROUTES: str | None = None
    AUDIT_METHODS: str | None = None
    AUDIT_MIN_STATUS: int | None = None
    AUDIT_MAX_STATUS: int | None = None

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )

    @property
    def jwt_ttl_seconds(self) -> int:
        return parse_duration(self.JWT_EXPIRES_IN)

    @property
    def cors_origins(self) -> list[str]:
        return _split_csv(self.CORS_ALLOW_ORIGINS)

    @property
    def audit_skip_routes(self) -> list[str] | None:
        if self.AUDIT_SKIP_ROUTES is None:
            return None
        return _split_csv(self.AUDIT_SKIP_ROUTES)

    @property
    def audit_methods(self) -> list[str] | None:
        if not self.AUDIT_METHODS:
            return None
        return [m.upper() for m in _split_csv(self.AUDIT_METHODS)]

    @property
    def is_test(self) -> bool:
        return self.ENV.strip().lower() in {"test", "ci"}


# Module-level singleton for easy import
settings = Settings()
