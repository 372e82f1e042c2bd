"""Configuration management for billing-pilot."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=("../../.env", "../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    environment: str = "development"
    log_level: str = "info"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Stripe (server-side secret, never sent from the browser)
    stripe_secret_key: str | None = None
    stripe_api_version: str | None = None

    # Parsing
    default_currency: str = "USD"
    max_upload_mb: int = 10

    # Feature Flags
    feature_image_ocr: bool = True
    feature_pdf_extraction: bool = True
    feature_excel_extraction: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def stripe_enabled(self) -> bool:
        """Check if a Stripe secret key is configured."""
        return bool(self.stripe_secret_key)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
