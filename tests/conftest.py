"""
Shared fixtures for the Actuate test suite.

The executor's collaborators are replaced with in-memory fakes: a run sink
that keeps every RunEntry, and a sleeper that records backoff delays instead
of waiting them out.
"""

from __future__ import annotations

import pytest

from actuate.core.registry import ActionRegistry
from actuate.core.types import RunEntry
from actuate.runtime.event_bus import EventBus
from actuate.runtime.executor import ActionExecutor


class RecordingSink:
    def __init__(self) -> None:
        self.runs: list[RunEntry] = []

    def push_run(self, entry: RunEntry) -> None:
        self.runs.append(entry)

    async def flush(self) -> None:
        return None

    async def shutdown(self) -> None:
        return None


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def registry() -> ActionRegistry:
    return ActionRegistry()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(callback_timeout_s=1.0)


@pytest.fixture
def executor(
    sink: RecordingSink,
    sleeper: RecordingSleep,
    event_bus: EventBus,
    registry: ActionRegistry,
) -> ActionExecutor:
    return ActionExecutor(sink, event_bus=event_bus, registry=registry, sleep=sleeper)
