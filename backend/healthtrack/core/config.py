"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Health Track Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "sqlite:///./health_track.db"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "healthtrack"
    scheduler_timezone: str = "UTC"

    # Session lifecycle
    strict_sessions: bool = False

    # Recommendation pipeline
    recommendations_enabled: bool = True
    text_generation_provider: str = "openai"
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o-mini"
    recommendation_timeout_seconds: float = 60.0
    recommendation_max_tokens: int = 400
    recommendation_workers: int = 2
    jobs_resume_on_startup: bool = True
    sweeper_interval_seconds: int = 60
    # Extra wait past the generation timeout before a processing job is presumed lost.
    stale_job_grace_seconds: int = 120


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
