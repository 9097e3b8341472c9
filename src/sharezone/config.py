"""Configuration settings for ShareZone.

Values come from ``SHAREZONE_*`` environment variables or a ``.env`` file,
e.g. ``SHAREZONE_SHARE_BASE_URL=https://share.example.com``.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_HOME = Path.home() / ".sharezone"


class Settings(BaseSettings):
    """Application settings."""

    # Storage
    storage_root: Path = _DEFAULT_HOME / "objects"
    database_path: Path = _DEFAULT_HOME / "sharezone.db"

    # Sharing
    share_base_url: str = "http://localhost:5173"
    share_token_bytes: int = Field(default=16, ge=16)

    # Payloads
    block_size: int = Field(default=64 * 1024, gt=0, le=2**32 - 1)
    max_upload_bytes: int = Field(default=5 * 1024**3, gt=0)

    # Password attempts (None disables limiting)
    password_max_attempts: Optional[int] = Field(default=5, ge=1)
    password_attempt_window_seconds: int = Field(default=300, gt=0)

    # Argon2id cost for share passwords
    argon2_time_cost: int = Field(default=3, ge=1)
    argon2_memory_cost: int = Field(default=65536, ge=8)
    argon2_parallelism: int = Field(default=1, ge=1)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SHAREZONE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
