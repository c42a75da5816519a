"""Runtime configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.environ.get(name)
    if not value:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Gateway settings. Everything except the database URL has a default."""
    database_url: Optional[str] = None
    log_level: str = "INFO"
    cors_allow_origins: Tuple[str, ...] = ("*",)

    # Bearer tokens issued by the hosted auth service
    auth_jwt_secret: Optional[str] = None
    auth_jwt_algorithm: str = "HS256"
    auth_jwt_audience: Optional[str] = "authenticated"

    # Submission rate limits (per client identity, per window)
    contact_rate_limit: int = 5
    admission_rate_limit: int = 3
    rate_limit_window_seconds: int = 3600
    rate_limit_backend: str = "memory"  # 'memory' or 'database'
    rate_limit_sweep_interval_seconds: int = 600

    # Object storage
    storage_backend: str = "local"  # 'local' or 'minio'
    upload_dir: str = "uploads"
    public_base_url: str = "/uploads"
    minio_endpoint: Optional[str] = None
    minio_access_key: Optional[str] = None
    minio_secret_key: Optional[str] = None
    minio_secure: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.environ.get("DATABASE_URL")
        # Heroku uses postgres:// but SQLAlchemy 2.0+ requires postgresql://
        if database_url and database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)

        return cls(
            database_url=database_url,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            cors_allow_origins=_env_list("CORS_ALLOW_ORIGINS", ("*",)),
            auth_jwt_secret=os.environ.get("AUTH_JWT_SECRET"),
            auth_jwt_algorithm=os.environ.get("AUTH_JWT_ALGORITHM", "HS256"),
            auth_jwt_audience=os.environ.get("AUTH_JWT_AUDIENCE", "authenticated") or None,
            contact_rate_limit=_env_int("CONTACT_RATE_LIMIT", 5),
            admission_rate_limit=_env_int("ADMISSION_RATE_LIMIT", 3),
            rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 3600),
            rate_limit_backend=os.environ.get("RATE_LIMIT_BACKEND", "memory").lower(),
            rate_limit_sweep_interval_seconds=_env_int("RATE_LIMIT_SWEEP_INTERVAL_SECONDS", 600),
            storage_backend=os.environ.get("STORAGE_BACKEND", "local").lower(),
            upload_dir=os.environ.get("UPLOAD_DIR", "uploads"),
            public_base_url=os.environ.get("PUBLIC_BASE_URL", "/uploads").rstrip("/"),
            minio_endpoint=os.environ.get("MINIO_ENDPOINT"),
            minio_access_key=os.environ.get("MINIO_ACCESS_KEY"),
            minio_secret_key=os.environ.get("MINIO_SECRET_KEY"),
            minio_secure=_env_bool("MINIO_SECURE", True),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
