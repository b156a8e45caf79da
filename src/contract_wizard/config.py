"""Configuration management for the Contract Wizard."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Contract Wizard configuration, read from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Service identity
    service_name: str = "contract-wizard"
    service_version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8015

    # External collaborators; unset means an in-process stand-in is used
    ai_assist_url: str | None = None
    ai_assist_timeout_seconds: float = 30.0
    persistence_url: str | None = None
    identity_url: str | None = None
    http_timeout_seconds: float = 10.0

    # Clause policy (JSON file); unset means the built-in Kenyan NDA policy
    policy_path: str | None = None

    # Session management
    session_ttl_seconds: int = 3600

    @property
    def json_logs(self) -> bool:
        return self.environment.lower() in ("production", "staging")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
