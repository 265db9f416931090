"""
Environment configuration for closed-function.

Loads tool settings from environment variables and `.env` using pydantic-settings.
"""

import tempfile
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tool settings loaded from CLOSED_FUNCTION_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLOSED_FUNCTION_",
        env_file=".env",
        extra="ignore",
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["text", "json"] = Field(
        default="text", description="Logging format - text for human-readable, json for structured logs"
    )

    # Build Configuration
    work_dir: str = Field(
        default_factory=tempfile.gettempdir,
        description="Directory holding per-run intermediate files",
    )
    keep_intermediates: bool = Field(
        default=False, description="Keep satellites, stripped hosts and bundles after mounting"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
