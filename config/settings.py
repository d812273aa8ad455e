from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for climblog-backend.

    Common defaults live here; environment variables override per environment.

    This module is intentionally simple: no YAML/JSON files, only env vars.
    """

    # --- Core ---
    environment: str  # required
    service_name: str = "climblog-backend"

    # --- HTTP server ---
    app_host: str  # required
    app_port: int  # required
    cors_allow_origins: list[str] = ["*"]

    # --- Logging ---
    log_level: str  # required

    # --- Database (PostgreSQL) ---
    db_host: str  # required
    db_port: int = 5432
    db_user: str  # required
    db_password: str  # required
    db_name: str  # required
    db_ssl_mode: str = "verify-full"

    # --- Connection pool ---
    db_pool_max_size: int = 10
    db_pool_acquire_timeout: float = 10.0
    db_pool_max_idle_time: float = 300.0
    db_connect_timeout: float = 10.0

    model_config = SettingsConfigDict(
        # .env.common: shared defaults (committed)
        # .env.local: local overrides (gitignored)
        env_file=(".env.common", ".env.local"),
        env_file_encoding="utf-8",
        frozen=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance. Call this instead of instantiating Settings directly."""
    return Settings()
