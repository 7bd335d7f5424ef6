"""Configuration for task-flow.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Settings are only consulted where a caller does not pass explicit values (logger,
timeout). The library never reads them at import time.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Most to least verbose.
LOG_LEVELS: tuple[str, ...] = ("debug", "info", "warn", "error")

DEFAULT_TIMEOUT_MS = 10_000


class FlowSettings(BaseSettings):
    """Settings for workflow execution.

    Environment variables:
    - LOG_LEVEL             (optional, one of debug/info/warn/error)
    - TASK_FLOW_TIMEOUT_MS  (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `FlowSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="debug",
        validation_alias="LOG_LEVEL",
        description="Minimum level emitted by the default workflow logger",
    )

    default_timeout_ms: float = Field(
        default=DEFAULT_TIMEOUT_MS,
        gt=0,
        validation_alias="TASK_FLOW_TIMEOUT_MS",
        description="Wall-clock budget (milliseconds) for a single workflow run",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> str:
        return normalize_level(value)


def normalize_level(value: object) -> str:
    """Map a configured level onto one of :data:`LOG_LEVELS`.

    Unset or unrecognized values fall back to ``debug``.
    """

    if not isinstance(value, str):
        return "debug"
    level = value.strip().lower()
    if level == "warning":
        return "warn"
    return level if level in LOG_LEVELS else "debug"
