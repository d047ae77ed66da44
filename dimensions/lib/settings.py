"""Environment-based settings for dimension jobs."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["DimensionSettings", "get_settings"]


class DimensionSettings(BaseSettings):
    """Process-wide defaults loaded from DIMENSIONS_* environment variables.

    Example:
        >>> # DIMENSIONS_WAREHOUSE_ROOT=/data/warehouse
        >>> # DIMENSIONS_LOG_FORMAT=json
        >>> settings = DimensionSettings()
        >>> settings.warehouse_root
        '/data/warehouse'
    """

    warehouse_root: str = Field(
        default="./warehouse",
        description="Base directory for relative target paths",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="'json' or 'console'")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    model_config = SettingsConfigDict(
        env_prefix="DIMENSIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


def get_settings() -> DimensionSettings:
    """Read settings from the current environment."""
    return DimensionSettings()
