from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    app_env: str = "dev"
    app_secret_key: str = "dev-secret-change-me"
    database_url: str = "postgresql+asyncpg://inventory:inventory@db:5432/inventory"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # Shared dashboard PIN. A placeholder gate, not a security boundary.
    access_pin: str = "2025"
    session_ttl_sec: int = 12 * 3600

    # Actor label written on rows the application creates on its own behalf.
    # Direct stock additions are recognized by (quantity < 0, username == system_actor).
    system_actor: str = "System"


settings = Settings()
