"""
Actuate — Common Primitives

Shared base classes and utilities used across the registry, the executor and
the audit sink.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, globally unique."""
    return str(ULID())


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(utc_now().timestamp() * 1000)


def safe_json(value: Any) -> str | None:
    """Serialise a value for audit storage. Returns None for None or unserialisable values."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return None


# ─── Base Models ──────────────────────────────────────────────────


class ActuateBaseModel(BaseModel):
    """Base model for all Actuate value objects."""

    model_config = {"populate_by_name": True, "from_attributes": True}
