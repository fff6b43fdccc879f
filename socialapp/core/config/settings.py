"""Application settings loaded from environment with safe fallbacks.

Environment precedence:
- Loads `.env` from the repo root before reading process env vars.
- Most values are pulled straight from env; booleans go through `_env_flag` so `"0"/"false"` work.
- Redis is optional: failure to connect logs an error but keeps the app running.

Key expectations (defaults in parentheses):
- `APP_ENV` controls settings class selection (`production` default).
- Database: `DATABASE_URL` or component parts (`DATABASE_*`), with `_test` suffix enforced in tests.
- Tokens: `SECRET_KEY` / `ALGORITHM` (`HS256`) / `ACCESS_TOKEN_EXPIRE_MINUTES` (60).
- Messaging: `MESSAGE_BATCH_WINDOW_MINUTES` (60), `ONLINE_WINDOW_SECONDS` (60), `TYPING_TTL_SECONDS` (10).
- Realtime: `MAX_SOCKETS_PER_USER` (5); `REDIS_URL` mirrors presence when set.
"""

import json
import logging
import os
from pathlib import Path
from typing import ClassVar, Optional

import redis
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# (__file__ is socialapp/core/config/settings.py, so the repo root is three levels up)
BASE_DIR = Path(__file__).resolve().parents[3]


load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger(__name__)


def _env_flag(name: str, *, default: Optional[bool] = False) -> Optional[bool]:
    """
    Helper to parse boolean-like environment variables.
    """
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Behavior highlights:
    - Loads `.env` at repo root, then lets process env override.
    - Enforces safe DB URLs (prefers `DATABASE_URL`, ensures `_test` suffix for test DBs).
    - Redis optional: failures disable presence mirroring but do not stop startup.
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        ignored_types=(redis.Redis,),
    )

    app_name: str = os.getenv("APP_NAME", "SocialApp")
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    test_database_url: Optional[str] = os.getenv("TEST_DATABASE_URL")
    database_hostname: Optional[str] = os.getenv("DATABASE_HOSTNAME")
    database_port: str = os.getenv("DATABASE_PORT", "5432")
    database_password: Optional[str] = os.getenv("DATABASE_PASSWORD")
    database_name: Optional[str] = os.getenv("DATABASE_NAME")
    database_username: Optional[str] = os.getenv("DATABASE_USERNAME")
    database_ssl_mode: str = os.getenv("DATABASE_SSL_MODE", "prefer")
    environment: str = os.getenv("APP_ENV", "production")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_dir: Optional[str] = os.getenv("LOG_DIR", "logs")
    use_json_logs: bool = _env_flag("USE_JSON_LOGS", default=True)
    # Accept raw string from env to avoid JSON parse errors; normalized to a list in __init__
    allowed_hosts: Optional[str] = os.getenv("ALLOWED_HOSTS")

    secret_key: str = os.getenv("SECRET_KEY", "change-me-in-production")
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

    message_batch_window_minutes: int = int(
        os.getenv("MESSAGE_BATCH_WINDOW_MINUTES", 60)
    )
    online_window_seconds: int = int(os.getenv("ONLINE_WINDOW_SECONDS", 60))
    typing_ttl_seconds: int = int(os.getenv("TYPING_TTL_SECONDS", 10))
    max_sockets_per_user: int = int(os.getenv("MAX_SOCKETS_PER_USER", 5))
    presence_ttl_seconds: int = int(os.getenv("PRESENCE_TTL_SECONDS", 600))

    REDIS_URL: Optional[str] = os.getenv("REDIS_URL")

    redis_client: ClassVar[Optional[redis.Redis]] = None

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        env_override = os.getenv("APP_ENV")
        if env_override:
            object.__setattr__(self, "environment", env_override)

        if self.REDIS_URL:
            try:
                self.__class__.redis_client = redis.Redis.from_url(self.REDIS_URL)
                logger.info("Redis client successfully initialized.")
            except Exception as e:
                logger.error(f"Error connecting to Redis: {str(e)}")
                self.__class__.redis_client = None
        else:
            logger.warning(
                "REDIS_URL is not set, presence will not be mirrored to Redis."
            )

        hosts_raw = self.allowed_hosts or ""
        hosts: list[str]
        if hosts_raw:
            try:
                hosts = [h.strip() for h in json.loads(hosts_raw)]
            except ValueError:
                hosts = [h.strip() for h in str(hosts_raw).split(",") if h.strip()]
        else:
            hosts = ["*"]
        if self.environment.lower() == "test" and "*" not in hosts and "testserver" not in hosts:
            hosts.append("testserver")
        object.__setattr__(self, "allowed_hosts", hosts)

    def get_database_url(self, *, use_test: bool = False) -> str:
        """Resolve the SQLAlchemy database URL for runtime or tests.

        Priority: explicit `DATABASE_URL` (or `_test` variant when requested),
        then composed Postgres parts, finally a sqlite fallback.
        """
        if use_test:
            test_url = self._resolve_test_database_url()
            if not test_url.startswith("sqlite") and "_test" not in test_url:
                raise ValueError(
                    "Test database URL must point to a dedicated test database (contains '_test')."
                )
            return test_url

        if self.database_url:
            return self.database_url

        if (
            self.database_hostname
            and self.database_username
            and self.database_password
            and self.database_name
        ):
            return self._compose_postgres_url(self.database_name)

        # Fail open to local SQLite so the app can start (health checks) when env vars are missing.
        return "sqlite:///./socialapp.db"

    def _resolve_test_database_url(self) -> str:
        """
        Build a test database URL.
        Priority:
        1) Explicit TEST_DATABASE_URL env.
        2) Derive from DATABASE_URL with a *_test suffix (or reuse sqlite).
        3) Derive from Postgres components with a *_test suffix.
        4) Fallback to sqlite for ad-hoc local runs.
        """
        if self.test_database_url:
            return self.test_database_url

        if self.database_url:
            from sqlalchemy.engine import make_url

            url = make_url(self.database_url)
            if url.drivername.startswith("sqlite"):
                return str(url)
            db_name = url.database or ""
            suffix_name = db_name if db_name.endswith("_test") else f"{db_name}_test"
            return url.set(database=suffix_name).render_as_string(hide_password=False)

        if (
            self.database_hostname
            and self.database_username
            and self.database_password
            and self.database_name
        ):
            return self._compose_postgres_url(f"{self.database_name}_test")

        return "sqlite:///./test.db"

    def _compose_postgres_url(self, database_name: str) -> str:
        base_url = (
            f"postgresql+psycopg2://{self.database_username}:{self.database_password}"
            f"@{self.database_hostname}:{self.database_port}/{database_name}"
        )
        if self.database_ssl_mode:
            return f"{base_url}?sslmode={self.database_ssl_mode}"
        return base_url
