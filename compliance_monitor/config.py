"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class TokenGrant(BaseModel):
    """Identity bound to a static API bearer token."""

    user_id: str
    role: str = Field(default="client", pattern=r"^(owner|analyst|client)$")
    org_id: str | None = None


class Settings(BaseSettings):
    """Central configuration for the Compliance Monitor."""

    # Application
    app_name: str = "Compliance Monitor"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    log_level: str = "INFO"
    log_format: str = "json"

    # API
    api_prefix: str = "/api"
    allowed_origins: str = "http://localhost:3000"
    rate_limit_default: str = "100/minute"
    report_rate_limit: str = "10/minute"

    # Data store
    store_backend: str = Field(default="memory", pattern=r"^(memory|sql)$")
    database_url: str = "sqlite:///./compliance.db"

    # Security
    secret_key: str = "change-me-in-production-please"
    access_tokens: dict[str, TokenGrant] = Field(default_factory=dict)

    # Report storage
    report_storage_backend: str = Field(default="local", pattern=r"^(local|supabase)$")
    report_storage_dir: str = "./var/reports"
    public_base_url: str = "http://localhost:8000"
    signed_url_ttl_seconds: int = Field(default=3600, ge=60)
    supabase_url: str = ""
    supabase_service_key: str = ""
    reports_bucket: str = "reports"

    # Alerts
    alert_dedup_window_days: int = Field(default=7, ge=1)

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",")]

    model_config = {"env_prefix": "COMPLIANCE_", "env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
