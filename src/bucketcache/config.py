"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Directory inserted between the base directory and the domain directory
NAMESPACE_DIR = "__bucketcache"
DEFAULT_DOMAIN = "_"
DEFAULT_TTL_MS = 60 * 60 * 1000


def bucket_dir_for(base_dir: str | Path, domain: str | None = None) -> Path:
    """Get the directory holding a domain's bucket files."""
    return Path(base_dir) / NAMESPACE_DIR / (domain or DEFAULT_DOMAIN)


class Settings(BaseSettings):
    """Cache settings loaded from environment variables.

    Optional:
        CACHE_DIR: Base directory for bucket files
        CACHE_DOMAIN: Domain subdirectory, isolates unrelated caches
        DEFAULT_TTL_MS: Lifetime given to buckets written without an eol
        LOCK_BACKEND: "memory" (single process) or "file" (multi process)
        LOCK_TIMEOUT_S: Timeout for the file lock backend
        READ_CHUNK_SIZE: Chunk size used by streamed reads
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_DIR: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Base cache directory",
    )
    CACHE_DOMAIN: str | None = Field(default=None, description="Cache domain")

    DEFAULT_TTL_MS: float = Field(
        default=DEFAULT_TTL_MS, gt=0, description="Default bucket lifetime (ms)"
    )

    LOCK_BACKEND: Literal["memory", "file"] = Field(
        default="memory", description="Writer lock backend"
    )
    LOCK_TIMEOUT_S: float | None = Field(
        default=None, description="File lock timeout in seconds (None waits forever)"
    )

    READ_CHUNK_SIZE: int = Field(
        default=64 * 1024, ge=1, description="Streamed read chunk size in bytes"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("CACHE_DOMAIN")
    @classmethod
    def normalize_domain(cls, v: str | None) -> str | None:
        """Treat a blank domain as no domain."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def bucket_dir(self) -> Path:
        """Directory holding this domain's bucket files."""
        return bucket_dir_for(self.CACHE_DIR, self.CACHE_DOMAIN)

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings for display."""
        return {
            "CACHE_DIR": str(self.CACHE_DIR),
            "CACHE_DOMAIN": self.CACHE_DOMAIN,
            "BUCKET_DIR": str(self.bucket_dir),
            "DEFAULT_TTL_MS": self.DEFAULT_TTL_MS,
            "LOCK_BACKEND": self.LOCK_BACKEND,
            "LOCK_TIMEOUT_S": self.LOCK_TIMEOUT_S,
            "READ_CHUNK_SIZE": self.READ_CHUNK_SIZE,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
