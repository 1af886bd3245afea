"""
Pydantic model for player configuration.
Provides robust validation for all settings.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from streamqueue.models.item import RepeatMode
from streamqueue.utils.path import get_cache_root


class PlayerConfig(BaseModel):
    """A validated configuration model for the queued player."""

    # Cache
    cache_dir: Path = Field(default_factory=get_cache_root)

    # Queue and prefetch behaviour
    prefetch_enabled: bool = True
    repeat_mode: RepeatMode = RepeatMode.OFF

    # Downloader settings
    max_attempts: int = 3
    base_delay: float = 1.5
    max_connections: int = 4
    connect_timeout: float = 15.0
    read_timeout: float = 90.0

    # Logging
    log_level: str = "INFO"
    json_log_dir: Path | None = None

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("repeat_mode", mode="before")
    @classmethod
    def validate_repeat_mode(cls, v):
        """Accepts the mode's name in any case as well as the enum itself."""
        if isinstance(v, str):
            try:
                return RepeatMode(v.strip().lower())
            except ValueError as e:
                raise ValueError(
                    "Repeat mode must be one of 'off', 'track' or 'queue'."
                ) from e
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_connections(cls, v: int) -> int:
        """Ensures a reasonable connection pool size."""
        if v < 1 or v > 32:
            raise ValueError("Max connections must be between 1 and 32.")
        return v

    @field_validator("base_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Base delay cannot be negative.")
        return v

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        return set(cls.model_fields)
