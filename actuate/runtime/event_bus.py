"""
Actuate — Event Bus

In-process publish/subscribe used by ctx.event.emit() and by event triggers.

emit() is fire-and-forget: synchronous handlers run inline, async handlers are
scheduled on the running loop. emit_async() awaits every handler with
per-callback timeout protection. A failing handler is logged and never
propagates to the emitter.

One bus per process, constructed at startup and handed to the executor.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable
from typing import Any, Union

import structlog

logger = structlog.get_logger()

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    def __init__(
        self,
        callback_timeout_s: float = 5.0,
        recent_buffer_size: int = 100,
    ) -> None:
        self._callback_timeout_s = callback_timeout_s
        self._logger = logger.bind(system="actuate.event_bus")

        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._recent: dict[str, deque[Any]] = defaultdict(
            lambda: deque(maxlen=recent_buffer_size)
        )
        # Strong references so scheduled handler tasks are not collected mid-flight
        self._pending: set[asyncio.Task[None]] = set()

        self._total_emitted: int = 0
        self._total_handler_errors: int = 0
        self._total_callback_timeouts: int = 0

    # ─── Subscription ────────────────────────────────────────────────

    def on(self, name: str, handler: EventHandler) -> None:
        """Register a handler for an event name."""
        self._subscribers[name].append(handler)

    def off(self, name: str, handler: EventHandler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        handlers = self._subscribers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def listener_count(self, name: str) -> int:
        return len(self._subscribers.get(name, ()))

    # ─── Emission ────────────────────────────────────────────────────

    def emit(self, name: str, payload: Any = None) -> None:
        """Publish without waiting for async handlers to finish."""
        self._record(name, payload)
        for handler in list(self._subscribers.get(name, ())):
            try:
                result = handler(payload)
            except Exception as exc:
                self._on_error(name, handler, exc)
                continue
            if inspect.isawaitable(result):
                self._schedule(name, handler, result)

    async def emit_async(self, name: str, payload: Any = None) -> None:
        """Publish and await every handler (each bounded by the callback timeout)."""
        self._record(name, payload)
        for handler in list(self._subscribers.get(name, ())):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await asyncio.wait_for(result, timeout=self._callback_timeout_s)
            except TimeoutError:
                self._total_callback_timeouts += 1
                self._logger.warning(
                    "event_callback_timeout",
                    event_name=name,
                    callback=getattr(handler, "__name__", str(handler)),
                )
            except Exception as exc:
                self._on_error(name, handler, exc)

    async def drain(self) -> None:
        """Wait for every handler scheduled by emit() to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _record(self, name: str, payload: Any) -> None:
        self._total_emitted += 1
        self._recent[name].append(payload)

    def _schedule(self, name: str, handler: EventHandler, awaitable: Awaitable[None]) -> None:
        async def run() -> None:
            try:
                await asyncio.wait_for(awaitable, timeout=self._callback_timeout_s)
            except TimeoutError:
                self._total_callback_timeouts += 1
                self._logger.warning("event_callback_timeout", event_name=name)
            except Exception as exc:
                self._on_error(name, handler, exc)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._logger.warning("event_handler_dropped_no_loop", event_name=name)
            return

        task = loop.create_task(run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _on_error(self, name: str, handler: EventHandler, exc: Exception) -> None:
        self._total_handler_errors += 1
        self._logger.error(
            "event_callback_error",
            event_name=name,
            callback=getattr(handler, "__name__", str(handler)),
            error=str(exc),
        )

    # ─── Query ───────────────────────────────────────────────────────

    def recent(self, name: str, limit: int = 10) -> list[Any]:
        """Return recent payloads for an event name (most recent first)."""
        buf = self._recent.get(name)
        if not buf:
            return []
        items = list(buf)
        items.reverse()
        return items[:limit]

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "total_emitted": self._total_emitted,
            "handler_errors": self._total_handler_errors,
            "callback_timeouts": self._total_callback_timeouts,
            "subscriber_count": sum(len(v) for v in self._subscribers.values()),
        }
