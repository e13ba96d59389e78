"""
Actuate — Action & Module Definition

An action is the core primitive: a named handler with an input schema, an
output schema, triggers, guards and a retry policy.

    class EchoInput(BaseModel):
        message: str

    class EchoOutput(BaseModel):
        echoed: str

    @action("echo", input=EchoInput, output=EchoOutput)
    async def echo(data: EchoInput, ctx: ActionContext) -> dict:
        return {"echoed": data.message}

The handler is wrapped so that every call validates input before the handler
runs and validates output after it returns. Validators are compiled here, once
per definition. The output schema's static contract (no input-only transport
locations) is checked here too, so a bad action fails at import time rather
than on its first request.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from actuate.core.errors import ActionValidationError
from actuate.core.guards.execution import GuardsInput, normalize_guards
from actuate.core.meta import attach_meta, split_meta
from actuate.core.schema import SchemaValidator, check_output_schema, field_errors
from actuate.core.types import (
    ActionConfig,
    ActionDefinition,
    ActionHandler,
    ModuleDefinition,
    RetryConfig,
    TriggerConfig,
)

if TYPE_CHECKING:
    from actuate.runtime.context import ActionContext


def _coerce_retry(retry: RetryConfig | Mapping[str, Any] | None) -> RetryConfig:
    if retry is None:
        return RetryConfig()
    if isinstance(retry, RetryConfig):
        return retry
    return RetryConfig(**retry)


def _wrap_handler(
    handler: ActionHandler,
    input_validator: SchemaValidator,
    output_validator: SchemaValidator,
) -> Callable[[Any, ActionContext], Any]:
    async def wrapped(raw_input: Any, ctx: ActionContext) -> Any:
        try:
            validated_input = input_validator.validate(raw_input)
        except ValidationError as exc:
            raise ActionValidationError("input", field_errors(exc)) from exc

        result = handler(validated_input, ctx)
        if inspect.isawaitable(result):
            result = await result

        data, meta = split_meta(result)
        try:
            validated_output = output_validator.validate(data)
        except ValidationError as exc:
            raise ActionValidationError("output", field_errors(exc)) from exc

        return attach_meta(output_validator.dump(validated_output), meta)

    wrapped.__name__ = getattr(handler, "__name__", "handler")
    wrapped.__qualname__ = getattr(handler, "__qualname__", wrapped.__name__)
    wrapped.__wrapped__ = handler  # type: ignore[attr-defined]
    return wrapped


def define(config: ActionConfig, handler: ActionHandler) -> ActionDefinition:
    """
    Build an ActionDefinition from a config and a raw handler.

    Guards and retry policy may be given in shorthand form (a guard list, a
    retry mapping); they are normalized here.
    """
    if not callable(handler):
        raise TypeError(f"Handler for action {config.name!r} is not callable")

    config = replace(
        config,
        triggers=tuple(config.triggers),
        guards=normalize_guards(config.guards),
        retry=_coerce_retry(config.retry),
    )
    check_output_schema(config.output)

    input_validator = SchemaValidator(config.input)
    output_validator = SchemaValidator(config.output)

    return ActionDefinition(
        config=config,
        handler=_wrap_handler(handler, input_validator, output_validator),
        input_validator=input_validator,
        output_validator=output_validator,
    )


def action(
    name: str,
    *,
    input: Any,
    output: Any,
    description: str = "",
    triggers: Iterable[TriggerConfig] = (),
    guards: GuardsInput = None,
    retry: RetryConfig | Mapping[str, Any] | None = None,
) -> Callable[[ActionHandler], ActionDefinition]:
    """Decorator form of define(); replaces the function with its ActionDefinition."""
    config = ActionConfig(
        name=name,
        input=input,
        output=output,
        description=description,
        triggers=tuple(triggers),
        guards=normalize_guards(guards),
        retry=_coerce_retry(retry),
    )

    def decorator(handler: ActionHandler) -> ActionDefinition:
        return define(config, handler)

    return decorator


def module(
    name: str,
    actions: Iterable[ActionDefinition],
    *,
    api_prefix: str = "",
    guards: GuardsInput = None,
    description: str = "",
) -> ModuleDefinition:
    """Group actions under a shared name, API prefix and guard phase."""
    if not name or "." in name:
        raise ValueError(f"Invalid module name {name!r}")
    if api_prefix and not api_prefix.startswith("/"):
        raise ValueError(f"Module api_prefix must start with '/', got {api_prefix!r}")
    return ModuleDefinition(
        name=name,
        actions=tuple(actions),
        guards=normalize_guards(guards),
        api_prefix=api_prefix.rstrip("/"),
        description=description,
    )
