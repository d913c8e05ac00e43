from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="UNIFAULT_",
        case_sensitive=False,
    )

    service_name: str = "unifault"
    # "production" switches the default sink to the detail-stripped projection.
    environment: str = "development"
    log_level: str = "INFO"

    # Correlation
    trace_header: str = "X-Trace-Id"
    legacy_trace_headers: list[str] = ["X-Request-ID"]

    # Process supervisor
    supervise: bool = True
    exit_code: int = 1

    # Celery
    # Default dev behavior: run tasks inline unless explicitly disabled.
    celery_eager: bool = True
    redis_url: str | None = None

    @property
    def diagnostic(self) -> bool:
        return self.environment.lower() != "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
