"""Application settings and configuration"""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Redis (optional - absent means in-memory store + sample data)
    REDIS_URL: Optional[str] = None
    CACHE_KEY_PREFIX: str = "shopee"

    # Shopee Affiliate API
    SHOPEE_APP_ID: Optional[str] = None
    SHOPEE_APP_SECRET: Optional[str] = None
    SHOPEE_AFFILIATE_API_URL: str = "https://open-api.affiliate.shopee.com.br/graphql"
    SHOPEE_AFFILIATE_ID: Optional[str] = None
    SHOPEE_TIMEOUT_SECONDS: float = 15.0

    # Gemini text generation
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODELS: list[str] = ["gemini-2.0-flash", "gemini-1.5-flash"]
    GEMINI_TIMEOUT_SECONDS: float = 30.0

    # Vercel Blob (optional - empty token = disabled)
    BLOB_READ_WRITE_TOKEN: Optional[str] = None
    BLOB_API_URL: str = "https://blob.vercel-storage.com"

    # Serverless deployment flag (disables local file downloads)
    VERCEL: bool = False

    # Filesystem
    DATA_DIR: str = "database"
    OUTPUT_DIR: str = "output"
    TEMP_DIR: str = "tmp"

    # Rendering
    FFMPEG_BINARY: str = "ffmpeg"
    RENDER_TIMEOUT_SECONDS: float = 60.0

    # Scheduler
    SCHEDULER_LOCK_TTL_SECONDS: int = 300
    SCHEDULE_BATCH_SIZE: int = 3  # Cards generated per due schedule

    # Rate limiting for expensive generation routes
    RATE_LIMIT_ENABLED: bool = True
    GENERATION_RATE_LIMIT: str = "10/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # App config
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Celery
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None

    # Sentry Error Tracking (optional)
    SENTRY_DSN: str = ""  # Empty string = disabled
    SENTRY_ENVIRONMENT: str = "production"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
