"""
Actuate — Guard Composition & Execution

A guard is a callable taking the ActionContext. It returns nothing (sync or
async) and aborts the invocation by raising.

Guard lists are normalised once, at definition time, into a GuardSpec tagged
union — Sequential or Parallel. A bare list is Sequential. When a module and
one of its actions both declare guards, the merged plan is an ordered tuple of
phases: the module's phase always runs before the action's, whatever either's
mode, because module guards establish context (tenant, org) that action guards
read.

Execution:
  Sequential — strict declared order; the first raising guard stops the rest.
  Parallel   — all guards start at once; the first failure fails the phase.
               Siblings already running are not cancelled and their side
               effects are not compensated. Parallel guards should be idempotent.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

import structlog

if TYPE_CHECKING:
    from actuate.runtime.context import ActionContext

logger = structlog.get_logger()

GuardFn = Callable[["ActionContext"], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class Sequential:
    guards: tuple[GuardFn, ...] = ()

    @property
    def mode(self) -> str:
        return "sequential"


@dataclass(frozen=True)
class Parallel:
    guards: tuple[GuardFn, ...] = ()

    @property
    def mode(self) -> str:
        return "parallel"


GuardSpec = Union[Sequential, Parallel]
GuardPlan = tuple[GuardSpec, ...]

# What users may pass as `guards=` on an action or module
GuardsInput = Union[GuardSpec, Sequence[GuardFn], None]


def sequential(guards: Iterable[GuardFn]) -> Sequential:
    """Run guards one after another; the first failure stops the rest."""
    return Sequential(tuple(guards))


def parallel(guards: Iterable[GuardFn]) -> Parallel:
    """
    Run guards concurrently; any failure fails the whole phase.

    Use only for independent guards with no ordering requirements.
    """
    return Parallel(tuple(guards))


def normalize_guards(guards: GuardsInput) -> GuardSpec:
    """Turn whatever was declared into a GuardSpec. A bare list is sequential."""
    if guards is None:
        return Sequential()
    if isinstance(guards, (Sequential, Parallel)):
        return guards
    if callable(guards):
        raise TypeError("guards must be a list of guard callables, not a single callable")
    items = tuple(guards)
    for guard in items:
        if not callable(guard):
            raise TypeError(f"Guard {guard!r} is not callable")
    return Sequential(items)


def merge_guards(module_guards: GuardsInput, action_guards: GuardsInput) -> GuardPlan:
    """Build the execution plan: module phase first, then action phase. Empty phases are dropped."""
    phases = (normalize_guards(module_guards), normalize_guards(action_guards))
    return tuple(phase for phase in phases if phase.guards)


def flatten(plan: GuardPlan) -> list[GuardFn]:
    """All guards of a plan in execution order."""
    return [guard for phase in plan for guard in phase.guards]


async def _invoke(guard: GuardFn, ctx: ActionContext) -> None:
    result = guard(ctx)
    if inspect.isawaitable(result):
        await result


def _retrieve_late_failure(task: asyncio.Task[Any]) -> None:
    # Siblings that fail after the phase has already failed are logged, not raised
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("parallel_guard_late_failure", error=str(exc))


async def run_phase(phase: GuardSpec, ctx: ActionContext) -> None:
    if isinstance(phase, Sequential):
        for guard in phase.guards:
            await _invoke(guard, ctx)
        return

    if not phase.guards:
        return
    tasks = [asyncio.ensure_future(_invoke(guard, ctx)) for guard in phase.guards]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

    # Report the failure of the earliest-declared guard among those finished
    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            for other in pending:
                other.add_done_callback(_retrieve_late_failure)
            for other in done:
                if other is not task and not other.cancelled():
                    other.exception()
            raise task.exception()  # type: ignore[misc]


async def run_guards(plan: GuardPlan, ctx: ActionContext) -> None:
    """Run every phase of the plan in order. Raises the first guard failure."""
    for phase in plan:
        await run_phase(phase, ctx)
