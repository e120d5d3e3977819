"""Runtime settings.

Values come from environment variables with the MOCKLITE_ prefix or from a
.env file; command line flags override them.
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server settings."""

    model_config = SettingsConfigDict(
        env_prefix="MOCKLITE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1", description="listen address")
    port: int = Field(default=8010, description="listen port")
    db: str = Field(default="data/rules_db.json", description="rules db path (json)")
    log_level: str = Field(default="INFO", description="log level")


def setup_lg(level: str) -> None:
    """Configure root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
