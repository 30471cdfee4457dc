"""
Runtime configuration for the FlexiForms API, read from the environment
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


def _load_env_files() -> None:
    # Load .env from the working directory and the repo root (do not override shell env)
    load_dotenv(override=False)
    repo_env = Path(__file__).resolve().parents[1] / ".env"
    if repo_env.exists():
        load_dotenv(dotenv_path=str(repo_env), override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw.isdigit() else default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name) or ""
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or list(default)


@dataclass
class Settings:
    database_url: str = "sqlite+aiosqlite:///./flexiforms.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    auth_provider: str = "firebase"
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"

    storage_backend: str = "local"
    upload_dir: str = "./uploads"
    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket: str = "submissions"

    submit_rate_limit: str = "30/minute"
    rate_limit_enabled: bool = True

    cors_allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    environment: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (after loading .env files)."""
        _load_env_files()
        jwt_secret = os.getenv("JWT_SECRET") or None
        default_provider = "jwt" if jwt_secret else "firebase"
        return cls(
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            db_pool_size=_env_int("DB_POOL_SIZE", cls.db_pool_size),
            db_max_overflow=_env_int("DB_MAX_OVERFLOW", cls.db_max_overflow),
            auth_provider=(os.getenv("AUTH_PROVIDER") or default_provider).strip().lower(),
            jwt_secret=jwt_secret,
            jwt_algorithm=os.getenv("JWT_ALGORITHM") or cls.jwt_algorithm,
            storage_backend=(os.getenv("STORAGE_BACKEND") or cls.storage_backend).strip().lower(),
            upload_dir=os.getenv("UPLOAD_DIR") or cls.upload_dir,
            r2_account_id=os.getenv("R2_ACCOUNT_ID") or "",
            r2_access_key_id=os.getenv("R2_ACCESS_KEY_ID") or "",
            r2_secret_access_key=os.getenv("R2_SECRET_ACCESS_KEY") or "",
            r2_bucket=os.getenv("R2_BUCKET") or cls.r2_bucket,
            submit_rate_limit=os.getenv("SUBMIT_RATE_LIMIT") or cls.submit_rate_limit,
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            cors_allowed_origins=_env_list("CORS_ALLOWED_ORIGINS", ["*"]),
            environment=os.getenv("ENV") or os.getenv("APP_ENV") or "",
        )
