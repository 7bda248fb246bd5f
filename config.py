"""Application configuration and settings helpers."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised configuration loaded from environment variables or .env."""

    app_id: Optional[str] = Field(
        None,
        description="Numeric identifier of the GitHub App.",
    )
    private_key: Optional[str] = Field(
        None,
        description="Base64-encoded PEM private key of the GitHub App.",
    )
    installation_id: Optional[str] = Field(
        None,
        description="Default GitHub App installation used for API calls.",
    )
    github_base_url: str = Field(
        "https://api.github.com",
        description="Base URL for the GitHub REST API.",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL for staging and the Celery broker.",
    )
    staging_key_prefix: str = Field(
        "screenshots:staged:",
        description="Key prefix for staged submissions in Redis.",
    )
    staging_ttl_seconds: int = Field(
        86400,
        ge=60,
        description="Seconds a staged submission is kept before Redis expires it.",
    )
    supabase_url: Optional[str] = Field(
        None,
        description="Supabase project URL hosting the public bucket.",
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service key used for storage uploads.",
    )
    public_bucket: str = Field(
        "screenshots",
        description="Public bucket that receives verified screenshots.",
    )
    public_base_url: Optional[str] = Field(
        None,
        description=(
            "Prefix for public object URLs. Defaults to the Supabase public "
            "object endpoint of ``supabase_url``."
        ),
    )
    cache_control: str = Field(
        "31536000",
        description="Cache-Control max-age (seconds) applied to published screenshots.",
    )
    function_url: Optional[str] = Field(
        None,
        description="Public URL of this service, used for deferred re-invocation.",
    )
    continuation_header: str = Field(
        "X-Deferred-Task-Name",
        description="Header that marks a request as a deferred continuation.",
    )
    continuation_delay_seconds: int = Field(
        60,
        ge=10,
        description="Seconds to wait before resuming a submission.",
    )
    http_timeout_seconds: float = Field(
        30.0,
        description="Timeout applied to outbound HTTP calls.",
    )
    log_level: str = Field(
        "INFO",
        description="Application log level.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def public_url_prefix(self) -> Optional[str]:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        if self.supabase_url:
            return f"{self.supabase_url.rstrip('/')}/storage/v1/object/public"
        return None


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
