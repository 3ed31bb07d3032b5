"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local env overrides (gitignored)
  4. Environment variables        — ``STOCK_FORECASTER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Services, the analyzer, the recommendation engine and every CLI command
receive an ``AppConfig`` (or one of its sections) — never raw dicts or
ad-hoc ``os.environ`` lookups.

The reorder policy itself (lead time, safety stock, restock buffer) is NOT
configurable; those constants live in ``stock_forecaster.forecasting.usage``.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

ENV_PREFIX = "STOCK_FORECASTER_"

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite store connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/stock_forecaster.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class ForecastConfig(BaseModel):
    """Trend analysis settings."""

    model_config = ConfigDict(frozen=True)

    lookback_days: int = 30

    @field_validator("lookback_days")
    @classmethod
    def validate_lookback(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"lookback_days must be >= 1, got {v}.")
        return v


class RecommendationConfig(BaseModel):
    """Batch recommendation settings."""

    model_config = ConfigDict(frozen=True)

    max_workers: int = 4
    wholesale_cost_ratio: float = 0.7

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}.")
        return v

    @field_validator("wholesale_cost_ratio")
    @classmethod
    def validate_cost_ratio(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"wholesale_cost_ratio must be in (0.0, 1.0], got {v}.")
        return v


class InventoryConfig(BaseModel):
    """Stock mutation settings."""

    model_config = ConfigDict(frozen=True)

    max_write_retries: int = 3
    default_category: str = "Uncategorized"

    @field_validator("max_write_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_write_retries must be >= 0, got {v}.")
        return v


class OutputConfig(BaseModel):
    """Report output locations."""

    model_config = ConfigDict(frozen=True)

    recommendation_dir: str = "data/outputs/recommendations"


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    forecast: ForecastConfig = ForecastConfig()
    recommendations: RecommendationConfig = RecommendationConfig()
    inventory: InventoryConfig = InventoryConfig()
    output: OutputConfig = OutputConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to the directory holding ``pyproject.toml``."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If merged values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config explicitly."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            raw = _deep_merge(raw, tomllib.load(f))

    raw = _apply_env_overrides(raw)
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply ``STOCK_FORECASTER_*`` env vars to the raw config dict.

    Supported overrides:
      STOCK_FORECASTER_DB_PATH      → raw["database"]["db_path"]
      STOCK_FORECASTER_LOG_LEVEL    → raw["logging"]["level"]
      STOCK_FORECASTER_MAX_WORKERS  → raw["recommendations"]["max_workers"]
      STOCK_FORECASTER_DEBUG        → raw["debug"]
    """
    if db_path := os.environ.get(f"{ENV_PREFIX}DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if max_workers := os.environ.get(f"{ENV_PREFIX}MAX_WORKERS"):
        raw.setdefault("recommendations", {})["max_workers"] = int(max_workers)

    if debug := os.environ.get(f"{ENV_PREFIX}DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map the raw TOML dict onto the ``AppConfig`` structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        forecast=ForecastConfig(**raw.get("forecast", {})),
        recommendations=RecommendationConfig(**raw.get("recommendations", {})),
        inventory=InventoryConfig(**raw.get("inventory", {})),
        output=OutputConfig(**raw.get("output", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
