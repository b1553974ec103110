"""
Application configuration management using Pydantic Settings
Handles all environment variables and application settings
"""

from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache


class Settings(BaseSettings):
    """Main application settings"""

    # Application Settings
    APP_NAME: str = "StoreForge Checkout API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./storeforge.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_ECHO: bool = False

    # Security Settings
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    CRON_SECRET: Optional[str] = None

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Email Configuration (empty SMTP_HOST logs emails instead of sending)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = "cart@storeforge.site"

    # Storefront URLs
    STOREFRONT_BASE_URL: str = "http://localhost:3000"
    PRODUCTION_DOMAIN: str = "storeforge.site"

    # Celery Configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TIMEZONE: str = "Asia/Kolkata"

    # Abandoned cart recovery
    ABANDONED_CART_IDLE_HOURS: int = 1
    ABANDONED_CART_MAX_AGE_DAYS: int = 7
    ABANDONED_CART_MIN_HOURS_BETWEEN_EMAILS: int = 4
    ABANDONED_CART_SWEEP_BATCH_SIZE: int = 200
    ABANDONED_CART_SWEEP_INTERVAL_MINUTES: int = 60
    ABANDONED_CART_RESET_SEQUENCE_ON_ACTIVITY: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def database_url_async(self) -> str:
        """Convert sync database URL to async"""
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
        elif self.DATABASE_URL.startswith("sqlite://"):
            return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://")
        return self.DATABASE_URL

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Create cached settings instance
    This ensures settings are loaded only once
    """
    return Settings()


# Global settings instance
settings = get_settings()
