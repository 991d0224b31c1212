"""
Statement Ledger - Configuration
================================
Environment-based settings using pydantic-settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional
import sys

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ASYNC_DRIVERS = ("+aiosqlite", "+asyncpg", "+aiomysql", "+asyncmy", "+psycopg")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/statement_ledger.db",
        description="SQLAlchemy async database URL"
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log"
    )
    db_connect_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts to reach the database at startup before giving up"
    )

    # ==========================================================================
    # Upload Configuration
    # ==========================================================================
    upload_dir: str = Field(
        default="data/uploads",
        description="Directory where uploaded statements are stored"
    )
    max_upload_mb: int = Field(default=10, ge=1, le=100)

    # ==========================================================================
    # Extraction Configuration
    # ==========================================================================
    extraction_backend: Literal["pdf", "sample"] = Field(
        default="pdf",
        description="Extractor used by processDocument: 'pdf' or 'sample'"
    )
    sample_extraction_delay_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Simulated latency of the sample extractor"
    )
    process_on_upload: bool = Field(
        default=False,
        description="Queue processing as a background task right after upload"
    )
    stuck_processing_minutes: int = Field(
        default=30,
        ge=1,
        description="Documents processing longer than this are failed at startup"
    )

    # ==========================================================================
    # HTTP Configuration
    # ==========================================================================
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
    )

    # ==========================================================================
    # Runtime Configuration
    # ==========================================================================
    environment: str = Field(default="production")
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)

    @property
    def max_upload_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_upload_mb * 1024 * 1024

    @property
    def sqlite_path(self) -> Optional[Path]:
        """Filesystem path of the SQLite database, if one is configured."""
        if not self.database_url.startswith("sqlite"):
            return None
        _, _, path = self.database_url.partition(":///")
        if not path or path.startswith(":memory:"):
            return None
        return Path(path)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate the database URL names an async driver."""
        if not v or v.strip() == "":
            raise ValueError("DATABASE_URL must not be empty")

        scheme = v.split("://", 1)[0]
        if not any(scheme.endswith(driver) for driver in ASYNC_DRIVERS):
            raise ValueError(
                f"DATABASE_URL must use an async driver (e.g. sqlite+aiosqlite), got '{scheme}'"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level must be a standard logging level, got '{v}'")
        return level

    @model_validator(mode="after")
    def warn_sample_backend_in_production(self) -> "Settings":
        """Warn when the sample extractor is used in production."""
        import logging

        if self.extraction_backend == "sample" and self.environment == "production":
            logger = logging.getLogger("config")
            logger.warning(
                "Sample extraction backend is enabled in production; "
                "processed documents will contain mock transactions",
                extra={"extraction_backend": self.extraction_backend}
            )
            print(
                "⚠️  WARNING: EXTRACTION_BACKEND=sample in production. "
                "Transactions will be mock data!",
                file=sys.stderr
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment on every call.
    """
    return Settings()
