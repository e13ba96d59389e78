"""
Actuate — Trigger Builders

Declarative bindings from an external source to an action. The registry only
stores them; each transport reads the triggers of its own type.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from actuate.core.types import (
    ApiTrigger,
    CronTrigger,
    EventTrigger,
    HttpMethod,
    ToolTrigger,
    WebhookTrigger,
)


def api(method: HttpMethod, path: str, map: Callable[..., Any] | None = None) -> ApiTrigger:
    if not path.startswith("/"):
        raise ValueError(f"API trigger path must start with '/', got {path!r}")
    return ApiTrigger(method=method, path=path, map=map)


def event(name: str, map: Callable[[Any], Any] | None = None) -> EventTrigger:
    return EventTrigger(event=name, map=map)


def cron(schedule: str, input: Callable[[], Any] | None = None) -> CronTrigger:
    if len(schedule.split()) not in (5, 6):
        raise ValueError(f"Cron schedule must have 5 or 6 fields, got {schedule!r}")
    return CronTrigger(schedule=schedule, input=input)


def tool(name: str, description: str) -> ToolTrigger:
    return ToolTrigger(name=name, description=description)


def webhook(
    path: str,
    verify: Callable[..., Any] | None = None,
    map: Callable[[Any], Any] | None = None,
) -> WebhookTrigger:
    if not path.startswith("/"):
        raise ValueError(f"Webhook path must start with '/', got {path!r}")
    return WebhookTrigger(path=path, verify=verify, map=map)
