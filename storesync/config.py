"""
App configuration — all credentials from environment (no hardcoded secrets).

Load from .env via pydantic_settings. In production, set ENVIRONMENT=production
so the store settings are validated at startup.
"""
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Dialects with an ON CONFLICT upsert (see pipeline/reconcile.py)
SUPPORTED_BACKENDS = ("postgresql", "sqlite")


class Settings(BaseSettings):
    """Application settings from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite:///./storesync.db"  # Use postgresql://... for production
    environment: str = "development"  # development | production

    # Shopify Admin REST API
    shopify_api_version: str = "2023-10"
    shopify_timeout_seconds: float = 30.0
    shopify_page_size: int = Field(250, ge=1, le=250)

    # Fleet sync loop
    scheduler_enabled: bool = True
    sync_interval_seconds: int = Field(3600, ge=1)
    sync_startup_delay_seconds: int = Field(10, ge=0)
    sync_tenant_pacing_seconds: float = Field(1.0, ge=0)

    rate_limit_requests_per_minute_ip: int = 100
    rate_limit_requests_per_minute_user: int = 100
    rate_limit_syncs_per_minute: int = 6

    @model_validator(mode="after")
    def validate_production_store(self):
        """Reject stores the upsert path cannot drive; in production also reject SQLite."""
        backend = self.database_url.split(":", 1)[0].split("+", 1)[0].lower()
        if backend not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"DATABASE_URL must use one of {', '.join(SUPPORTED_BACKENDS)}, got {backend or 'nothing'!r}"
            )
        if self.environment != "production":
            return self
        if self.database_url.startswith("sqlite"):
            raise ValueError("In production, DATABASE_URL must point at a PostgreSQL database")
        return self


settings = Settings()
