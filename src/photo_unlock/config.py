"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

MPESA_BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    cloudinary_cloud_name: str
    cloudinary_api_key: str
    cloudinary_api_secret: str
    mpesa_consumer_key: str = ""
    mpesa_consumer_secret: str = ""
    mpesa_business_short_code: str = "174379"
    mpesa_passkey: str = ""
    mpesa_callback_url: str = ""
    mpesa_validation_url: str = ""
    mpesa_confirmation_url: str = ""
    mpesa_environment: str = "sandbox"
    mpesa_timeout_seconds: float = 30.0
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    shutdown_grace_seconds: int = 10
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 900
    payment_rate_limit_requests: int = 10
    upload_rate_limit_requests: int = 5
    transaction_expiry_hours: int = 24
    expiry_sweep_interval_seconds: int = 3600

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
        frozen=True,
    )

    @property
    def mpesa_base_url(self) -> str:
        """Return the Daraja base URL for the configured environment."""
        return MPESA_BASE_URLS.get(self.mpesa_environment, MPESA_BASE_URLS["sandbox"])

    @property
    def debug(self) -> bool:
        """Return true when error bodies may include tracebacks."""
        return self.environment == "local"
