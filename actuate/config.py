"""
Actuate — Configuration System

All configuration is Pydantic-validated and loaded from:
1. A YAML file (defaults)
2. Environment variables (overrides, ACTUATE_ prefix, "__" for nesting)

Every tunable parameter of the execution core lives here. Per-action retry
policy is not configuration — it is declared on the action itself.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


class ExecutorConfig(BaseModel):
    # Wall-clock ceiling across all attempts of one invocation. None disables it.
    retry_deadline_ms: int | None = None
    default_trigger_type: str = "api"

    @field_validator("retry_deadline_ms")
    @classmethod
    def _positive_deadline(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("retry_deadline_ms must be positive")
        return value


class WriteBufferConfig(BaseModel):
    enabled: bool = True
    flush_interval_ms: int = Field(default=2000, gt=0)
    max_buffer_size: int = Field(default=500, gt=0)


class EventBusConfig(BaseModel):
    callback_timeout_s: float = 5.0
    recent_buffer_size: int = 100


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["console", "json"] = "console"
    # Stdlib loggers capped at WARNING regardless of level
    quiet_loggers: list[str] = Field(default_factory=lambda: ["asyncio"])


# ─── Root Configuration ──────────────────────────────────────────


class ActuateConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACTUATE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    instance_id: str = "actuate-default"

    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    write_buffer: WriteBufferConfig = Field(default_factory=WriteBufferConfig)
    event_bus: EventBusConfig = Field(default_factory=EventBusConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> ActuateConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.

    Values passed explicitly to a pydantic-settings model take priority over the
    environment, so env overrides for the YAML-provided sections are merged in
    here before construction.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    overrides: dict[str, Any] = {}
    if level := os.environ.get("ACTUATE_LOGGING__LEVEL"):
        overrides.setdefault("logging", {})["level"] = level
    if fmt := os.environ.get("ACTUATE_LOGGING__FORMAT"):
        overrides.setdefault("logging", {})["format"] = fmt
    if deadline := os.environ.get("ACTUATE_EXECUTOR__RETRY_DEADLINE_MS"):
        overrides.setdefault("executor", {})["retry_deadline_ms"] = int(deadline)
    if enabled := os.environ.get("ACTUATE_WRITE_BUFFER__ENABLED"):
        overrides.setdefault("write_buffer", {})["enabled"] = enabled.lower() in (
            "true", "1", "yes",
        )
    if instance_id := os.environ.get("ACTUATE_INSTANCE_ID"):
        overrides["instance_id"] = instance_id

    return ActuateConfig(**_deep_merge(raw, overrides))
