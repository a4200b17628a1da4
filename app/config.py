"""
Application configuration management
"""

from decimal import Decimal
from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Busline"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str  # Must be provided via environment

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if v.startswith('postgresql://'):
            v = v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO: bool = False
    DB_SQLITE_BUSY_TIMEOUT: float = 30.0

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50

    # JWT (tokens are issued by the external auth provider)
    JWT_SECRET_KEY: str  # Must be provided via environment
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    @field_validator('JWT_SECRET_KEY')
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        if not v or v == "change-me":
            raise ValueError("JWT_SECRET_KEY must be set to a secure value")
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    # Payment gateway (mocked)
    PAYMENT_GATEWAY_SUCCESS_RATE: float = 0.95
    PAYMENT_GATEWAY_LATENCY_SECONDS: float = 1.0
    CASH_DEPOSIT_RATE: Decimal = Decimal("0.25")

    # Receipt storage
    RECEIPT_STORAGE_DIR: str = "media/receipts"
    RECEIPT_BASE_URL: str = "/media/receipts"
    RECEIPT_MAX_BYTES: int = 5 * 1024 * 1024

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Monitoring
    PROMETHEUS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    LOG_DIR: str = "logs"

    # Booking
    MAX_SEATS_PER_BOOKING: int = 10
    SEAT_LOCK_DEFAULT_SECONDS: int = 120
    SEAT_LOCK_MIN_SECONDS: int = 30
    SEAT_LOCK_MAX_SECONDS: int = 300
    SEAT_LOCK_SWEEP_ENABLED: bool = True
    SEAT_LOCK_SWEEP_INTERVAL_SECONDS: int = 30
    SEATS_PER_ROW: int = 4

    # Cache
    CACHE_BACKEND: str = "memory"  # memory | redis
    CACHE_MAX_ENTRIES: int = 256
    CACHE_TTL_TRIPS: int = 30

    @field_validator("CORS_ORIGINS", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("CACHE_BACKEND")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        if v not in ("memory", "redis"):
            raise ValueError("CACHE_BACKEND must be 'memory' or 'redis'")
        return v

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV == "testing"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Create global settings instance
settings = Settings()
