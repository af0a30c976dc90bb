"""
Vision Image Cache Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional
from functools import lru_cache
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_PACKAGE_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Durable cache store
    CACHE_DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./vision_image_cache.db",
        description="Async SQLAlchemy URL of the durable image cache",
    )
    CACHE_DEFAULT_TTL_SECONDS: int = Field(
        default=86400,
        ge=1,
        le=86400 * 365,
        description="Default time to live of durable cache entries",
    )
    TRANSIENT_CACHE_CAPACITY: int = Field(
        default=100, ge=1, le=10000, description="In-memory fetch cache capacity"
    )

    # Store circuit breaker
    STORE_CIRCUIT_FAILURE_THRESHOLD: int = Field(
        default=5, ge=1, le=20, description="Store failures before opening circuit"
    )
    STORE_CIRCUIT_RECOVERY_TIMEOUT: float = Field(
        default=30.0,
        ge=0.0,
        le=600.0,
        description="Seconds before an open store circuit is probed again",
    )

    # Network fetch
    FETCH_TIMEOUT_SECONDS: float = Field(
        default=10.0, gt=0, le=120, description="Per-request image fetch timeout"
    )
    FETCH_RETRIES: int = Field(
        default=0, ge=0, le=5, description="Retries for a failed direct fetch"
    )
    FETCH_RETRY_DELAY_SECONDS: float = Field(
        default=0.5, ge=0.0, le=30.0, description="Initial retry backoff delay"
    )
    DOCUMENT_ORIGIN: str = Field(
        default="http://localhost:5173",
        description="Origin used to absolutize relative image paths",
    )
    OBJECT_STORAGE_MARKER: str = Field(
        default="supabase.co/storage",
        description="URL fragment identifying the cloud object-storage origin",
    )
    BUNDLED_ASSET_DIR: Path = Field(
        default=_PACKAGE_ROOT / "assets",
        description="Directory holding bundled static image assets",
    )

    # Batch preload
    PRELOAD_BATCH_SIZE: int = Field(
        default=15, ge=1, le=200, description="URLs resolved concurrently per batch"
    )
    PRELOAD_BATCH_DELAY_SECONDS: float = Field(
        default=0.05, ge=0.0, le=10.0, description="Pause between batches"
    )

    # Accessibility pre-check
    ACCESSIBILITY_TIMEOUT_SECONDS: float = Field(
        default=5.0, gt=0, le=60, description="HEAD probe timeout"
    )
    ACCESSIBILITY_CONCURRENCY: int = Field(
        default=5, ge=1, le=50, description="Concurrent accessibility probes"
    )

    # Development and debugging
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON")
    SQL_ECHO: Optional[bool] = Field(default=None, description="Echo SQL statements")

    @field_validator("CACHE_DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL uses an async driver."""
        if not v.startswith(("sqlite+aiosqlite://", "postgresql+asyncpg://")):
            raise ValueError(
                "CACHE_DATABASE_URL must use an async driver "
                "(sqlite+aiosqlite or postgresql+asyncpg)"
            )
        return v

    @field_validator("DOCUMENT_ORIGIN")
    @classmethod
    def validate_document_origin(cls, v):
        """Validate document origin is an absolute http(s) origin."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("DOCUMENT_ORIGIN must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def hardware_asset_dir(self) -> Path:
        """Directory holding bundled hardware photos."""
        return Path(self.BUNDLED_ASSET_DIR) / "hardware"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
