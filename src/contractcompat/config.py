"""
Runtime settings for contractcompat.

Values come from keyword overrides, then ``CONTRACTCOMPAT_*`` environment
variables, then a local ``.env`` file, then the defaults below.  The
engine reads ``max_workers``; the CLI reads the rest.

Example:
    from contractcompat.config import get_config

    workers = get_config().max_workers
    strict = get_config(fail_on="unknown")
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from contractcompat.types import Classification


class ContractCompatConfig(BaseSettings):
    """
    Central configuration for contractcompat.

    All settings can be overridden via environment variables
    prefixed with CONTRACTCOMPAT_.

    Example:
        export CONTRACTCOMPAT_MAX_WORKERS=8
        export CONTRACTCOMPAT_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTRACTCOMPAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Parallelism for extraction and per-edge classification
    max_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Worker threads for extraction and classification (1 = serial)",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level for contractcompat",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for Loki, text for console)",
    )

    # Report handling
    fail_on: Literal["breaking", "unknown"] = Field(
        default="breaking",
        description="Lowest verdict classification that fails the CLI run",
    )
    output_format: Literal["json", "yaml"] = Field(
        default="json",
        description="Serialisation format for CLI reports",
    )

    @field_validator("log_level", "log_format", "fail_on", "output_format", mode="before")
    @classmethod
    def lowercase(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @property
    def fail_threshold(self) -> Classification:
        """Classification at or above which a report is a failure."""
        return Classification(self.fail_on)

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())


# Global singleton
_config: Optional[ContractCompatConfig] = None


def get_config(**overrides) -> ContractCompatConfig:
    """Return the process-wide settings.

    The first call (or any call with *overrides*) builds a fresh
    ``ContractCompatConfig``; later calls reuse it.
    """
    global _config

    if overrides or _config is None:
        _config = ContractCompatConfig(**overrides)

    return _config


def reset_config() -> None:
    """Drop the cached settings so the next ``get_config()`` re-reads the environment."""
    global _config
    _config = None


def get_max_workers() -> int:
    """Worker threads for extraction and per-edge classification."""
    return get_config().max_workers
