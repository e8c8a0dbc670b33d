"""Runtime configuration loaded from the environment or a ``.env`` file."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from privpool.exceptions import ConfigurationError

# Hard ceiling of the withdrawal circuit's sibling arrays
MAX_TREE_DEPTH = 32

DEFAULT_MAX_CONSECUTIVE_MISSES = 10


class PoolSettings(BaseSettings):
    """
    SDK settings.

    Every field can be overridden with a ``PRIVPOOL_``-prefixed environment
    variable, e.g. ``PRIVPOOL_MAX_CONSECUTIVE_MISSES=25``.
    """

    model_config = SettingsConfigDict(env_prefix="PRIVPOOL_", env_file=".env", extra="ignore")

    max_consecutive_misses: int = Field(
        default=DEFAULT_MAX_CONSECUTIVE_MISSES,
        ge=1,
        description="Unused derivation indices tolerated before a scope scan stops",
    )
    max_tree_depth: int = Field(default=MAX_TREE_DEPTH, ge=1)
    artifacts_dir: Path = Field(default=Path("artifacts"))
    snarkjs_binary: str = Field(default="snarkjs")
    prover_timeout: float = Field(default=300.0, gt=0, description="Seconds per snarkjs call")
    log_level: str = Field(default="INFO")

    @field_validator("max_tree_depth")
    @classmethod
    def _depth_within_circuit(cls, value: int) -> int:
        if value > MAX_TREE_DEPTH:
            raise ValueError(f"max_tree_depth cannot exceed {MAX_TREE_DEPTH}")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level: {value}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> PoolSettings:
    """Return the process-wide settings instance."""
    return PoolSettings()


def reset_settings() -> None:
    """Forget the cached settings (used by tests after changing the environment)."""
    get_settings.cache_clear()


def configure_logging(settings: Optional[PoolSettings] = None) -> None:
    """Attach a stream handler to the package logger at the configured level."""
    settings = settings or get_settings()
    logger = logging.getLogger("privpool")
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {settings.log_level}")
    logger.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
