"""Centralised configuration using pydantic-settings.

All tunables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, PositiveInt, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/trump_goggles/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class ProcessingConfig(BaseModel):
    """Traversal, matching and circuit-breaker limits."""

    chunk_size: PositiveInt = 50
    time_slice_ms: PositiveInt = 15
    max_operations: PositiveInt = 1000
    cache_size: PositiveInt = 1000
    use_cache: bool = True
    early_bailout: bool = True
    # Wrap matches in tooltip-carrying spans; False rewrites text in place.
    tooltips: bool = True


class ObserverConfig(BaseModel):
    """Mutation batching and pacing."""

    batch_size: PositiveInt = 50
    debounce_ms: PositiveInt = 50
    throttle_ms: PositiveInt = 100
    max_buffer_size: PositiveInt = 100


class TooltipConfig(BaseModel):
    """Tooltip timing and geometry."""

    show_delay_ms: PositiveInt = 50
    pointer_throttle_ms: PositiveInt = 32
    scroll_throttle_ms: PositiveInt = 150
    offset: int = 8
    max_width: int = 300
    max_height: int = 200

    @model_validator(mode="after")
    def _box_is_usable(self) -> TooltipConfig:
        if self.max_width < 50 or self.max_height < 50:
            msg = "TOOLTIP__MAX_WIDTH and TOOLTIP__MAX_HEIGHT must be at least 50"
            raise ValueError(msg)
        if self.offset < 0:
            msg = "TOOLTIP__OFFSET must not be negative"
            raise ValueError(msg)
        return self


class LogConfig(BaseModel):
    """Log destinations for the command-line tool."""

    log_dir: Path = Path("logs")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Settings with automatic .env loading and type validation.

    Environment variables use the ``TRUMP_GOGGLES_`` prefix and a
    double-underscore delimiter for nesting:
    ``TRUMP_GOGGLES_PROCESSING__MAX_OPERATIONS``,
    ``TRUMP_GOGGLES_OBSERVER__DEBOUNCE_MS``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_prefix="TRUMP_GOGGLES_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    processing: ProcessingConfig = ProcessingConfig()
    observer: ObserverConfig = ObserverConfig()
    tooltip: TooltipConfig = TooltipConfig()
    log: LogConfig = LogConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
