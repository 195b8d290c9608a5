"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache

from pydantic import SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The admin token and database password use SecretStr to prevent
    accidental logging. Database URL is assembled from individual
    components to match the official PostgreSQL Docker image
    environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"
    # --- CORS ---
    cors_allowed_origins: list[str] = []
    cors_allow_credentials: bool = False
    cors_allowed_methods: list[str] = ["GET", "POST"]
    cors_allowed_headers: list[str] = ["Content-Type", "Authorization", "X-Auth-Code"]

    # --- PostgreSQL ---
    postgres_user: str = "gatekeeper"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "gatekeeper"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- Admin ---
    # No default: admin endpoints reject every call until this is set.
    admin_token: SecretStr | None = None

    # --- Auth codes ---
    auth_code_header: str = "X-Auth-Code"
    auth_code_prefix: str = "tupleap"

    # --- Validation cache ---
    # Upper bound on staleness after a deactivation.
    cache_ttl_seconds: float = 30.0
    cache_max_entries: int = 10_000
    cache_cleanup_interval_seconds: float = 60.0

    # --- Gatekeeper ---
    # Cache-miss store lookups slower than this deny with store_unavailable.
    store_lookup_timeout_seconds: float = 2.0

    # --- Usage accumulator ---
    usage_flush_interval_seconds: float = 5.0
    usage_flush_threshold: int = 500
    usage_max_pending: int = 100_000
    usage_flush_max_retries: int = 3
    usage_flush_backoff_seconds: float = 0.5

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from gatekeeper.config import get_settings
        settings = get_settings()

    Or for dependency injection in FastAPI::

        @app.get("/")
        def root(settings: Settings = Depends(get_settings)):
            ...
    """
    return Settings()


settings = get_settings()
