"""
Process-wide configuration for rasterkit.

Settings are read once from RASTERKIT_* environment variables (or passed
explicitly) and handed to an ImageContext, which owns every resource the
settings govern.
"""

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rasterkit.core.constants import CacheConstants, ImageConstants, SystemConstants


class Settings(BaseSettings):
    """Settings loaded from RASTERKIT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RASTERKIT_",
        case_sensitive=False,
    )

    # Debug-mode detection of handles that are never released
    leak_tracking: bool = False

    # Encode cache (0 in either field disables caching)
    max_cache_items: int = Field(default=CacheConstants.DEFAULT_MAX_ITEMS, ge=0)
    max_cache_memory_bytes: int = Field(default=CacheConstants.DEFAULT_MAX_MEMORY_BYTES, ge=0)

    # Input limits
    max_image_pixels: int = Field(default=ImageConstants.DEFAULT_MAX_IMAGE_PIXELS, ge=1)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = (
        SystemConstants.LOG_LEVEL_DEFAULT
    )

    def to_dict(self) -> dict:
        """Convert settings to a plain dictionary."""
        return self.model_dump()


def get_settings() -> Settings:
    """Create and return settings from the environment."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    """
    Configure root logging for applications embedding rasterkit.

    Args:
        settings: Settings providing the log level
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=SystemConstants.LOG_FORMAT,
    )
