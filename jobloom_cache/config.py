"""
Configuration management using Pydantic Settings.
Loads environment variables and provides per-profile cache configuration.
"""

import logging
from functools import lru_cache
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jobloom_cache.cache import CacheConfig

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Fallback cache settings (seconds)
    cache_default_ttl: float = Field(
        default=300.0,
        gt=0,
        description="Default TTL for caches without a dedicated profile",
    )
    cache_default_max_size: int = Field(
        default=1000,
        ge=1,
        description="Default maximum number of entries per cache",
    )
    cache_default_swr: float = Field(
        default=60.0,
        ge=0,
        description="Default stale-while-revalidate window (0 disables)",
    )

    # API response cache
    cache_api_ttl: float = Field(default=300.0, gt=0, description="TTL for API responses")
    cache_api_max_size: int = Field(default=500, ge=1, description="Max API response entries")
    cache_api_swr: float = Field(
        default=60.0,
        ge=0,
        description="Stale-while-revalidate window for API responses",
    )

    # User data cache
    cache_user_ttl: float = Field(default=600.0, gt=0, description="TTL for user data")
    cache_user_max_size: int = Field(default=200, ge=1, description="Max user data entries")

    # Expensive computations (CV analysis, ATS scoring)
    cache_compute_ttl: float = Field(default=1800.0, gt=0, description="TTL for computations")
    cache_compute_max_size: int = Field(default=100, ge=1, description="Max computation entries")

    # Reference data (SOC codes, sponsor register)
    cache_reference_ttl: float = Field(default=3600.0, gt=0, description="TTL for reference data")
    cache_reference_max_size: int = Field(default=1000, ge=1, description="Max reference entries")

    # Background prune task
    cache_prune_interval: int = Field(
        default=60,
        ge=1,
        description="Seconds between background prune passes",
    )

    # HTTP
    host: str = Field(default="127.0.0.1", description="Bind address for the service")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port for the service")
    cors_allow_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    # Application Constants
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("cors_allow_origins")
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        """Normalise whitespace around comma-separated origins."""
        origins = [o.strip() for o in v.split(",") if o.strip()]
        if not origins:
            raise ValueError("CORS_ALLOW_ORIGINS must list at least one origin")
        return ",".join(origins)

    @property
    def cors_origins(self) -> List[str]:
        return self.cors_allow_origins.split(",")

    def default_cache_config(self) -> CacheConfig:
        return CacheConfig(
            default_ttl=self.cache_default_ttl,
            max_size=self.cache_default_max_size,
            stale_while_revalidate=self.cache_default_swr,
        )

    def cache_profiles(self) -> dict[str, CacheConfig]:
        """
        Build the named cache configurations used by the application.

        The API response cache has its own stale window; the other profiles
        fall back to ``cache_default_swr``.

        Returns:
            dict: Profile name -> CacheConfig
        """
        return {
            "api": CacheConfig(
                default_ttl=self.cache_api_ttl,
                max_size=self.cache_api_max_size,
                stale_while_revalidate=self.cache_api_swr,
            ),
            "user": CacheConfig(
                default_ttl=self.cache_user_ttl,
                max_size=self.cache_user_max_size,
                stale_while_revalidate=self.cache_default_swr,
            ),
            "compute": CacheConfig(
                default_ttl=self.cache_compute_ttl,
                max_size=self.cache_compute_max_size,
                stale_while_revalidate=self.cache_default_swr,
            ),
            "reference": CacheConfig(
                default_ttl=self.cache_reference_ttl,
                max_size=self.cache_reference_max_size,
                stale_while_revalidate=self.cache_default_swr,
            ),
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton

    Raises:
        ValidationError: If environment variables are invalid
    """
    return Settings()
