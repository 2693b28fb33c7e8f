"""Application settings using pydantic-settings.

Loads configuration from AUTOMATION_* environment variables with .env
file support.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Persistence
    storage_dir: Path = Field(
        default=Path("~/automations").expanduser(),
        description="Directory holding one JSON document per workflow",
    )

    # HTTP server
    host: str = "127.0.0.1"
    port: int = Field(default=8765, ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Auto-layout defaults
    layout_level_spacing: float = Field(default=300, gt=0)
    layout_sibling_spacing: float = Field(default=200, gt=0)
    layout_orientation: Literal["horizontal", "vertical"] = "horizontal"

    def layout_options(self) -> dict:
        return {
            "level_spacing": self.layout_level_spacing,
            "sibling_spacing": self.layout_sibling_spacing,
            "orientation": self.layout_orientation,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
