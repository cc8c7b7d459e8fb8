"""
Configuration management using Pydantic settings.
Handles database URL, JWT secrets, notification channels and scheduler options.
"""

from pydantic import validator
from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache


DEFAULT_DATABASE_URL = "postgresql+asyncpg://postgres:postgres@db:5432/rental_marketplace"


class Settings(BaseSettings):
    """Application settings read from environment variables and .env."""

    # Application configuration
    app_name: str = "Rental Marketplace API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False

    # Database configuration
    postgres_db: str = "rental_marketplace"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "db"
    postgres_port: int = 5432
    database_url: str = DEFAULT_DATABASE_URL

    # JWT configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    jwt_refresh_token_expire_days: int = 7

    # API configuration
    api_v1_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8081", "http://localhost:19006"]
    max_request_size: int = 1024 * 1024
    rate_limit_requests: int = 100
    rate_limit_window: int = 60

    # Pagination defaults
    default_page_size: int = 20
    max_page_size: int = 100

    # Marketplace defaults
    default_currency: str = "JOD"
    property_auto_approve: bool = False

    # Notification delivery
    notifications_dry_run: bool = True
    default_timezone: str = "UTC"
    default_quiet_hours_start: int = 22
    default_quiet_hours_end: int = 7

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = False
    smtp_start_tls: bool = True
    smtp_timeout: int = 30
    email_from_address: str = "notifications@rental-marketplace.local"

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None
    twilio_api_base: str = "https://api.twilio.com/2010-04-01"

    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: Optional[str] = None
    channel_request_timeout: float = 10.0

    # Background jobs
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    digest_hour: int = 8
    weekly_digest_weekday: int = 0
    payment_reminder_days: int = 5
    lease_reminder_days: int = 30

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    @validator("database_url", pre=True)
    def validate_database_url(cls, v, values):
        """Build database URL from components if not provided directly."""
        if not v or v == DEFAULT_DATABASE_URL:
            user = values.get("postgres_user", "postgres")
            password = values.get("postgres_password", "postgres")
            host = values.get("postgres_host", "db")
            port = values.get("postgres_port", 5432)
            db = values.get("postgres_db", "rental_marketplace")
            return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        # Ensure async driver is used
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @validator("jwt_secret_key", pre=True)
    def validate_jwt_secret_key(cls, v):
        """Validate JWT secret key strength."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required")
        if len(v) < 32 and v != "your-secret-key-change-in-production":
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @validator("environment")
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @validator("digest_hour", "default_quiet_hours_start", "default_quiet_hours_end")
    def validate_hour(cls, v):
        """Hours are whole hours of the day."""
        if not 0 <= v <= 23:
            raise ValueError("Hour must be between 0 and 23")
        return v

    @validator("weekly_digest_weekday")
    def validate_weekday(cls, v):
        """Weekday follows datetime.weekday(): Monday is 0."""
        if not 0 <= v <= 6:
            raise ValueError("Weekday must be between 0 (Monday) and 6 (Sunday)")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
