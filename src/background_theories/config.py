"""Engine configuration.

Loaded from environment variables (prefix ``BT_``), a ``.env`` file, or a
YAML file. YAML keys may use either snake_case or camelCase
(``maxExecutionDepth`` and friends, as in config/background_theories.yaml).

Usage:
    from background_theories.config import get_settings, load_settings

    settings = get_settings()                         # env / .env
    settings = load_settings("config/background_theories.yaml")
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .errors import ConfigError

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class EngineSettings(BaseSettings):
    """Configuration for the reasoning engine."""

    # ----- Bounds -----
    max_execution_depth: int = Field(
        default=10, ge=1, description="Maximum number of sweeps (rounds)."
    )
    execution_timeout: float = Field(
        default=30.0, gt=0, description="Wall-clock bound in seconds."
    )

    # ----- Scheduling -----
    enable_parallel_execution: bool = Field(
        default=False,
        description="Run non-conflicting axioms of a round concurrently.",
    )
    max_concurrent_axioms: int = Field(
        default=5, ge=1, description="Worker pool size in parallel mode."
    )
    convergence_threshold: float = Field(
        default=0.001,
        ge=0,
        description="Reserved for numeric-convergence axioms; unused by 5.1 and 6.13.",
    )

    # ----- Axioms -----
    auto_register_executors: bool = Field(
        default=True,
        description="Build the registry from axiom_executors at startup.",
    )
    axiom_executors: list[str] = Field(
        default_factory=lambda: ["5.1", "6.13"],
        description="Axiom ids to register, in execution order.",
    )

    # ----- Audit / logging -----
    log_axiom_executions: bool = Field(
        default=True, description="Persist audit records to the audit store."
    )
    audit_db_path: str | None = Field(
        default=None, description="SQLite audit database. None keeps it in memory."
    )
    log_level: str = Field(default="INFO", description="Logging level name.")

    model_config = {
        "env_prefix": "BT_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalize(raw: dict[str, Any]) -> dict[str, Any]:
    # Keys nested under "reasoning" are flattened into the top level.
    data = {k: v for k, v in raw.items() if k != "reasoning"}
    section = raw.get("reasoning")
    if isinstance(section, dict):
        data.update(section)
    return {_snake_case(k): v for k, v in data.items()}


def load_settings(path: str | Path | None = None, **overrides: Any) -> EngineSettings:
    """Build settings from an optional YAML file plus explicit overrides.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    values: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        values.update(_normalize(raw))
    values.update({_snake_case(k): v for k, v in overrides.items() if v is not None})

    try:
        settings = EngineSettings(**values)
    except ValidationError as e:
        raise ConfigError(str(e)) from e

    logger.debug(
        "Loaded settings: max_execution_depth=%d, execution_timeout=%.1fs, parallel=%s",
        settings.max_execution_depth,
        settings.execution_timeout,
        settings.enable_parallel_execution,
    )
    return settings


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached settings singleton (environment only)."""
    return EngineSettings()
