"""
Actuate — Action Context

The per-invocation value object handed to guards and handlers. It is built
once by the executor for each root or nested invocation; only `retry` changes
between attempts.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel

from actuate.core.meta import TransportMetadata, with_meta
from actuate.core.types import AuthContext

if TYPE_CHECKING:
    from actuate.core.registry import ActionRegistry
    from actuate.runtime.event_bus import EventBus


class ResponseSink(Protocol):
    """Header and cookie sink supplied by HTTP-like transports."""

    headers: dict[str, str]

    def set_cookie(self, name: str, value: str, **options: Any) -> None: ...


@dataclass
class RetryInfo:
    attempt: int = 1
    max_attempts: int = 1

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass
class ModuleInfo:
    name: str


class EventEmitter:
    """ctx.event — emits on the injected bus, or nowhere if none was given."""

    def __init__(self, bus: EventBus | None) -> None:
        self._bus = bus

    def emit(self, name: str, payload: Any = None) -> None:
        if self._bus is not None:
            self._bus.emit(name, payload)


ActionInvoker = Callable[[str, Any], Awaitable[Any]]


@dataclass
class ActionContext:
    trace_id: str
    logger: Any
    auth: AuthContext
    event: EventEmitter
    trigger_type: str
    invoke: ActionInvoker = field(repr=False)
    retry: RetryInfo = field(default_factory=RetryInfo)
    module: ModuleInfo | None = None
    request: Any = None
    response: ResponseSink | None = None
    registry: ActionRegistry | None = field(default=None, repr=False)
    call_stack: tuple[str, ...] = ()

    async def action(self, name: str, input: Any) -> Any:
        """
        Call another registered action and return its output.

        Raises CircularDependencyError if `name` is already in flight higher up
        this call chain, or the callee's own error if it fails.
        """
        return await self.invoke(name, input)

    def with_meta(
        self,
        data: Mapping[str, Any] | BaseModel,
        meta: TransportMetadata | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return with_meta(data, meta)
