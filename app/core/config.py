from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env with local defaults"""

    # Database
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "fleet_management"

    # Cache
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CONNECT_TIMEOUT: float = 2.0
    REDIS_SOCKET_TIMEOUT: float = 2.0

    # JWT
    JWT_SECRET_KEY: str = "change-this-secret-in-production-minimum-32-characters"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24

    # Mail
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = "noreply@fleetmanagement.com"
    MAIL_FROM_NAME: str = "Fleet Management System"
    MAIL_SERVER: str = "smtp.gmail.com"
    MAIL_PORT: int = 587
    MAIL_STARTTLS: bool = True
    MAIL_SSL_TLS: bool = False
    MAIL_SUPPRESS_SEND: bool = False

    # Compliance / cache windows
    EXPIRY_THRESHOLD_DAYS: int = 30
    HIERARCHY_CACHE_TTL: int = 600
    AGGREGATE_CACHE_TTL: int = 300
    DEFAULT_CACHE_TTL: int = 3600

    # Background work
    SCHEDULER_ENABLED: bool = True
    MONITORING_SAMPLE_SECONDS: int = 60

    ALLOWED_ORIGINS: str = "*"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()

MONGO_URI = settings.MONGO_URI
MONGO_DB = settings.MONGO_DB

COLLECTION_VENDORS = "vendors"
COLLECTION_VEHICLES = "vehicles"
COLLECTION_DRIVERS = "drivers"
COLLECTION_DOCUMENTS = "documents"

EXPIRY_THRESHOLD_DAYS = settings.EXPIRY_THRESHOLD_DAYS
HIERARCHY_CACHE_TTL = settings.HIERARCHY_CACHE_TTL
AGGREGATE_CACHE_TTL = settings.AGGREGATE_CACHE_TTL
DEFAULT_CACHE_TTL = settings.DEFAULT_CACHE_TTL
