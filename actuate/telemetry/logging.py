"""
Actuate — Structured Logging

All logging via structlog, rendered through the stdlib root logger so that
library and application records share one handler. Each component binds its
own `system`; the executor adds action, module and trace id per invocation.

ActuateError values passed as log fields are expanded into their structured
payload (kind, status, context) instead of a bare repr.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, TYPE_CHECKING, Any

import structlog

from actuate.core.errors import ActuateError

if TYPE_CHECKING:
    from actuate.config import LoggingConfig


def expand_actuate_errors(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog processor: replace ActuateError field values with to_dict()."""
    for key, value in event_dict.items():
        if isinstance(value, ActuateError):
            event_dict[key] = value.to_dict()
    return event_dict


def setup_logging(
    config: LoggingConfig,
    instance_id: str = "",
    stream: IO[str] | None = None,
) -> None:
    """
    Configure structlog and the stdlib root logger for the whole process.

    Call once at startup, before the registry is loaded.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        expand_actuate_errors,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if instance_id:
        structlog.contextvars.bind_contextvars(instance_id=instance_id)

    renderer: Any
    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
