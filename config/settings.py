"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for automation and SMS jobs)"
    )

    # ===================
    # AUTH
    # ===================
    super_admin_emails: list[str] = Field(
        default_factory=list,
        description="Emails always granted the super_admin role"
    )

    # ===================
    # TWILIO (SMS)
    # ===================
    twilio_account_sid: Optional[str] = Field(
        None,
        description="Twilio account SID"
    )
    twilio_auth_token: Optional[str] = Field(
        None,
        description="Twilio auth token"
    )
    twilio_from_number: Optional[str] = Field(
        None,
        description="Default sender number for SMS"
    )

    # ===================
    # SENDGRID (EMAIL)
    # ===================
    sendgrid_api_key: Optional[str] = Field(
        None,
        description="SendGrid API key"
    )
    email_from_address: str = Field(
        default="no-reply@example.com",
        description="Sender address for automation emails"
    )

    # ===================
    # SMS CAMPAIGNS
    # ===================
    sms_batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Recipients dispatched per chunk"
    )
    sms_max_workers: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Parallel sends within one chunk"
    )
    sms_cost_per_message: float = Field(
        default=0.01,
        ge=0,
        description="Cost per SMS used in campaign analytics"
    )

    # ===================
    # ANALYTICS
    # ===================
    bottleneck_daily_cost_per_item: float = Field(
        default=50,
        ge=0,
        description="Daily holding/opportunity cost per delayed item"
    )
    bottleneck_window_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Days of production tracking used in bottleneck analysis"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        description="Allowed CORS origins"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def twilio_configured(self) -> bool:
        """Check if Twilio is properly configured."""
        return bool(self.twilio_account_sid and self.twilio_auth_token)

    @property
    def sendgrid_configured(self) -> bool:
        return bool(self.sendgrid_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
