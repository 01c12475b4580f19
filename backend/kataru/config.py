"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Kataru application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "Kataru"
    DEBUG: bool = False
    AUTO_CREATE_TABLES: bool = False

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "kataru"
    # Full SQLAlchemy URL; overrides the DB_* fields when set
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async MySQL connection string using asyncmy driver."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (Celery broker) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Media Volume (object storage) ---
    MEDIA_VOLUME: str = "media_volume"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    AVATAR_BUCKET: str = "kataru-avatars"
    PRODUCT_BUCKET: str = "kataru-products"
    VIDEO_BUCKET: str = "kataru-videos"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # --- D-ID (talking avatar) ---
    D_ID_API_URL: str = "https://api.d-id.com"
    D_ID_API_KEY: str = ""
    DEFAULT_VOICE_PROVIDER: str = "microsoft"
    DEFAULT_VOICE_ID: str = "ja-JP-NanamiNeural"

    # --- xAI (scene generation) ---
    XAI_API_URL: str = "https://api.x.ai"
    XAI_API_KEY: str = ""
    XAI_VIDEO_MODEL: str = "grok-imagine-video"

    # --- HTTP ---
    PROVIDER_TIMEOUT: float = 30.0
    DOWNLOAD_TIMEOUT: float = 120.0

    # --- Polling ---
    MATERIALIZE_LEASE_SECONDS: int = 300
    WAIT_MAX_ATTEMPTS: int = 60
    WAIT_INTERVAL_SECONDS: float = 5.0

    # --- Retention ---
    CLEANUP_RETENTION_DAYS: int = 7
    CLEANUP_BATCH_SIZE: int = 200

    # --- CORS ---
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
