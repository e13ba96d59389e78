"""
Actuate — Run Write Buffer

Every execution attempt produces a RunEntry. The executor hands each one to
the audit sink and moves on: push_run() is synchronous and never waits on
storage.

WriteBuffer is the in-process sink. Entries accumulate in memory and are
handed in batches to a writer coroutine — on a timer, when the buffer reaches
max_buffer_size, or on shutdown. Where the writer persists them (Postgres,
a queue, a file) is the writer's business. Without a writer, each batch is
emitted to the structured log so records are never silently dropped.

If the writer fails, the batch is put back at the head of the buffer, capped
at max_buffer_size; the oldest overflow is discarded and counted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

import structlog

from actuate.core.types import RunEntry

logger = structlog.get_logger()

RunWriter = Callable[[Sequence[RunEntry]], Awaitable[None]]


class RunSink(Protocol):
    """What the executor needs from an audit sink."""

    def push_run(self, entry: RunEntry) -> None: ...

    async def flush(self) -> None: ...

    async def shutdown(self) -> None: ...


class WriteBuffer:
    def __init__(
        self,
        writer: RunWriter | None = None,
        flush_interval_ms: int = 2000,
        max_buffer_size: int = 500,
        enabled: bool = True,
    ) -> None:
        self._writer = writer
        self._flush_interval_s = flush_interval_ms / 1000
        self._max_buffer_size = max_buffer_size
        self._enabled = enabled
        self._runs: list[RunEntry] = []
        self._flushing = False
        self._timer: asyncio.Task[None] | None = None
        self._pending_flush: asyncio.Task[None] | None = None
        self._logger = logger.bind(system="actuate.write_buffer")

        self._records_written: int = 0
        self._records_failed: int = 0
        self._records_dropped: int = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def pending(self) -> int:
        return len(self._runs)

    def push_run(self, entry: RunEntry) -> None:
        """Buffer a run entry. Triggers a background flush when the buffer is full."""
        if not self._enabled:
            return
        self._runs.append(entry)
        if len(self._runs) >= self._max_buffer_size:
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._pending_flush is not None and not self._pending_flush.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the next timer tick or explicit flush() picks it up
            return
        self._pending_flush = loop.create_task(self.flush())

    async def flush(self) -> None:
        """Hand every buffered entry to the writer."""
        if self._flushing or not self._runs:
            return

        self._flushing = True
        # Swap buffers so new pushes go to a fresh list
        batch, self._runs = self._runs, []
        try:
            await self._write(batch)
            self._records_written += len(batch)
        except Exception as exc:
            self._records_failed += len(batch)
            restored = batch + self._runs
            overflow = max(0, len(restored) - self._max_buffer_size)
            self._records_dropped += overflow
            self._runs = restored[overflow:]
            self._logger.error(
                "run_flush_failed",
                batch_size=len(batch),
                dropped=overflow,
                error=str(exc),
            )
        finally:
            self._flushing = False

    async def _write(self, batch: list[RunEntry]) -> None:
        if self._writer is not None:
            await self._writer(batch)
            return
        for entry in batch:
            self._logger.info(
                "action_run",
                run_id=entry.id,
                action=entry.action_name,
                module=entry.module_name,
                trace_id=entry.trace_id,
                trigger=entry.trigger_type,
                status=entry.status,
                attempt=entry.attempt,
                duration_ms=entry.duration_ms,
                error=entry.error,
            )

    # ─── Lifecycle ───────────────────────────────────────────────────

    def start(self) -> None:
        """Start the periodic flush loop on the running event loop."""
        if not self._enabled or self._timer is not None:
            return
        self._timer = asyncio.get_running_loop().create_task(self._flush_loop())

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval_s)
            await self.flush()

    async def shutdown(self) -> None:
        """Stop the timer and flush whatever is left."""
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None
        if self._pending_flush is not None:
            await asyncio.gather(self._pending_flush, return_exceptions=True)
            self._pending_flush = None
        await self.flush()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "pending": len(self._runs),
            "records_written": self._records_written,
            "records_failed": self._records_failed,
            "records_dropped": self._records_dropped,
        }
