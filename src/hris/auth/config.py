"""
Configuration for the authorization core.

Settings come from the environment (``HRIS_AUTH_*``) or a ``.env`` file.
The signing secret has no default: a missing secret fails at startup.
"""

import sys
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Runtime settings for token issuance, hashing and storage."""

    model_config = SettingsConfigDict(
        env_prefix="HRIS_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Tokens
    jwt_secret: SecretStr
    jwt_algorithm: str = Field(default="HS256")
    access_token_ttl_minutes: int = Field(default=15, gt=0)
    refresh_token_ttl_days: int = Field(default=7, gt=0)

    # Passwords
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Storage
    database_path: Path = Field(default=Path("data/auth.db"))

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    @field_validator("jwt_secret")
    @classmethod
    def secret_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("jwt_secret must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_ttl_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.refresh_token_ttl_days)


@lru_cache()
def get_settings() -> AuthSettings:
    """Cached settings instance for the running process."""
    return AuthSettings()


def configure_logging(settings: AuthSettings) -> None:
    """
    Replace loguru's default sink with the configured level.

    Adds a rotating file sink when ``log_file`` is set.
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(settings.log_file),
            level=settings.log_level,
            rotation="10 MB",
            retention=10,
            enqueue=True,
        )

    logger.debug(f"Logging configured at {settings.log_level}")
