"""
Configuration for the forest, the heart-rate monitor and logging.

Values come from the environment (optionally a .env file) and are validated
with pydantic when loaded.
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ForestConfig(BaseModel):
    """Isolation forest parameters."""

    num_trees: int = Field(default=100, gt=0, description="Number of trees in the ensemble")
    subsample_size: int = Field(
        default=256, ge=2, description="Cap on samples per tree, also sets the height limit"
    )
    threshold: float = Field(
        default=0.6, ge=0.0, le=1.0, description="Scores strictly above this are anomalies"
    )
    n_jobs: int = Field(default=1, description="joblib workers for tree building, -1 for all cores")
    random_state: int | None = Field(default=None, description="Seed for reproducible forests")

    @field_validator("n_jobs")
    def validate_n_jobs(cls, v):
        if v == 0:
            raise ValueError("n_jobs must not be 0")
        return v


class MonitorConfig(BaseModel):
    """Heart-rate window settings."""

    window_days: int = Field(default=7, gt=0, description="Days of history fed to the forest")
    min_samples: int = Field(
        default=2, ge=2, description="Readings needed in the window before scoring"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="console", description="Logging format")


class AppConfig(BaseModel):
    """Main configuration combining all subsystems."""

    forest: ForestConfig = Field(default_factory=ForestConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""
    load_dotenv()

    def _level_to_literal(val: str) -> LogLevel:
        v = val.strip().upper()
        return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")

    def _optional_int(val: str | None) -> int | None:
        if val is None or not val.strip():
            return None
        return int(val)

    forest_config = ForestConfig(
        num_trees=int(os.getenv("PULSE_NUM_TREES", "100")),
        subsample_size=int(os.getenv("PULSE_SUBSAMPLE_SIZE", "256")),
        threshold=float(os.getenv("PULSE_THRESHOLD", "0.6")),
        n_jobs=int(os.getenv("PULSE_N_JOBS", "1")),
        random_state=_optional_int(os.getenv("PULSE_RANDOM_STATE")),
    )

    monitor_config = MonitorConfig(
        window_days=int(os.getenv("PULSE_WINDOW_DAYS", "7")),
        min_samples=int(os.getenv("PULSE_MIN_SAMPLES", "2")),
    )

    log_format = os.getenv("LOG_FORMAT", "console").strip().lower()
    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="json" if log_format == "json" else "console",
    )

    return AppConfig(forest=forest_config, monitor=monitor_config, logging=logging_config)


@lru_cache
def get_config() -> AppConfig:
    """Get cached configuration."""
    return load_config_from_env()
