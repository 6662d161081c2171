"""
Application settings and configuration management.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from cinevault import __version__

_VALID_SCOPES = ("movies", "collections", "series", "all")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = Field(default="cinevault")
    app_version: str = Field(default=__version__)
    app_url: str = Field(default="http://localhost:3000")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Redis (metadata cache). An empty URL disables the cache entirely.
    redis_url: str = Field(default="")
    redis_password: Optional[str] = Field(default=None)
    redis_socket_timeout: float = Field(default=2.0)

    # Object storage (Cloudflare R2 / any S3-compatible endpoint)
    r2_endpoint: str = Field(default="")
    r2_bucket: str = Field(default="")
    r2_access_key_id: str = Field(default="")
    r2_secret_access_key: str = Field(default="")
    r2_region: str = Field(default="auto")
    r2_force_path_style: bool = Field(default=True)
    r2_public_base_url: str = Field(default="")
    placeholder_key: Optional[str] = Field(default=None)

    # TMDb image origin
    tmdb_image_base_url: str = Field(default="https://image.tmdb.org/t/p")

    # Cache tuning
    exists_cache_ttl: int = Field(default=300, ge=1)
    tmdb_known_cache_ttl: int = Field(default=86400, ge=1)
    signed_url_cache_margin: int = Field(default=120, ge=0)

    # Origin fetch
    origin_timeout: float = Field(default=18.0, gt=0)
    origin_retries: int = Field(default=3, ge=0)
    origin_backoff_base: float = Field(default=1.0, ge=0)
    origin_backoff_cap: float = Field(default=16.0, ge=0)

    # CDN warmup
    warmup_enabled: bool = Field(default=False)
    warmup_interval_minutes: int = Field(default=30, ge=1)
    warmup_scope: str = Field(default="all")
    warmup_limit: int = Field(default=400)
    warmup_concurrency: int = Field(default=10)
    warmup_timeout_ms: int = Field(default=8000, ge=1)
    warmup_retries: int = Field(default=2, ge=0)
    warmup_backoff_base_ms: int = Field(default=500, ge=0)
    warmup_max_urls_per_run: int = Field(default=2000, ge=1)
    warmup_batch_size: int = Field(default=200, ge=1)
    warmup_batch_pause: float = Field(default=0.5, ge=0)
    warmup_scope_pause: float = Field(default=1.5, ge=0)
    warmup_manifest_path: Optional[Path] = Field(default=None)

    # Security
    cron_secret: str = Field(default="")

    # CDN purge
    cloudflare_api_token: str = Field(default="")
    cloudflare_zone_id: str = Field(default="")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("warmup_scope")
    @classmethod
    def validate_warmup_scope(cls, v: str) -> str:
        """Validate warmup scope; ``both`` is accepted as ``all``."""
        scope = v.lower().strip()
        if scope == "both":
            return "all"
        if scope not in _VALID_SCOPES:
            raise ValueError(f"Invalid warmup scope: {v}")
        return scope

    @field_validator("warmup_limit")
    @classmethod
    def clamp_warmup_limit(cls, v: int) -> int:
        """Clamp the per-entity warmup limit to 1-5000."""
        return min(max(v, 1), 5000)

    @field_validator("warmup_concurrency")
    @classmethod
    def clamp_warmup_concurrency(cls, v: int) -> int:
        """Clamp warmup concurrency to 1-24."""
        return min(max(v, 1), 24)

    @property
    def is_redis_configured(self) -> bool:
        """Check if a Redis URL is set."""
        return bool(self.redis_url.strip())

    @property
    def is_storage_configured(self) -> bool:
        """Check if all required object storage credentials are set."""
        return all(
            [
                self.r2_endpoint,
                self.r2_bucket,
                self.r2_access_key_id,
                self.r2_secret_access_key,
            ]
        )

    @property
    def is_purge_configured(self) -> bool:
        """Check if Cloudflare purge credentials are set."""
        return bool(self.cloudflare_api_token and self.cloudflare_zone_id)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()


# Global settings instance
settings = get_settings()
