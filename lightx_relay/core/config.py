"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "LightX Relay"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD

    # ==========================================================================
    # Server
    # ==========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    MAX_REQUEST_BODY_BYTES: int = 10485760  # 10MB

    # ==========================================================================
    # LightX API
    # ==========================================================================
    LIGHTX_API_KEY: Optional[str] = None
    LIGHTX_BASE_URL: str = "https://api.lightxeditor.com/external/api/v2"
    HTTP_TIMEOUT_SECONDS: float = 60.0

    # ==========================================================================
    # Pipeline Settings
    # ==========================================================================
    POLL_INTERVAL_SECONDS: float = 3.0
    DEFAULT_MAX_RETRIES: int = 5  # Used when LightX omits maxRetriesAllowed
    DEFAULT_CONTENT_TYPE: str = "image/jpeg"

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
