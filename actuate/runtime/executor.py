"""
Actuate — Action Executor

Runs one invocation of a registered action through the full pipeline:

  1. Context   — fresh trace id, bound logger, auth, event emitter, the
                 composition callback with its call chain
  2. Guards    — the merged plan (module phase, then action phase); a failure
                 ends the invocation immediately and is never retried
  3. Handler   — the validation-wrapped handler under the action's retry policy
  4. Audit     — one RunEntry per attempt pushed to the run sink
  5. Result    — a discriminated ActionResult; the executor never raises to
                 its caller for an ordinary Exception

Retry loop:
  On failure the error is classified (see core.errors.is_retryable). A
  retryable error with attempts left, an approving retry_if and room under the
  optional wall-clock deadline sleeps for the backoff and tries again with
  ctx.retry.attempt incremented. Anything else is the terminal failure.

Composition:
  ctx.action(name, input) executes another registered action with the same
  caller identity. The chain of in-flight registry keys travels with each
  nested call; re-entering a key already on the chain raises
  CircularDependencyError naming the whole cycle. The chain belongs to one
  root invocation and is never shared between invocations.

Collaborators (run sink, event bus, registry) are injected. Construct one
executor per process at startup and hand it to every transport.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import Field, ValidationError

from actuate.config import ExecutorConfig
from actuate.core.errors import (
    ActuateError,
    CircularDependencyError,
    InternalError,
    NotFound,
    Unauthorized,
    is_retryable,
)
from actuate.core.guards.execution import run_guards
from actuate.core.meta import TransportSection, split_meta, transport_meta
from actuate.core.types import AuthContext, RegisteredAction, RunEntry
from actuate.primitives.common import ActuateBaseModel, new_id, now_ms, safe_json
from actuate.runtime.context import ActionContext, EventEmitter, ModuleInfo, RetryInfo

if TYPE_CHECKING:
    from actuate.core.registry import ActionRegistry
    from actuate.runtime.context import ResponseSink
    from actuate.runtime.event_bus import EventBus
    from actuate.runtime.write_buffer import RunSink

logger = structlog.get_logger()

NESTED_TRIGGER = "action"

Sleeper = Callable[[float], Awaitable[Any]]


class ActionResult(ActuateBaseModel):
    """
    The uniform outcome of one invocation.

    Transports map it onto their own protocol: an HTTP status, an MCP error
    payload, a scheduler retry or dead-letter decision.
    """

    model_config = {"arbitrary_types_allowed": True}

    success: bool
    data: Any = None
    error: str | None = None
    error_object: Exception | None = Field(default=None, repr=False)
    trace_id: str = ""
    attempts: int = 0

    @property
    def body(self) -> Any:
        """Output data without the transport envelope."""
        data, _ = split_meta(self.data)
        return data

    def transport(self, section: TransportSection) -> Any:
        """One transport's metadata section, if the handler attached it."""
        return transport_meta(self.data, section) if self.success else None

    def http_status(self) -> int:
        if self.success:
            http = self.transport("http")
            return http.status if http is not None and http.status else 200
        if isinstance(self.error_object, ActuateError):
            return self.error_object.status_code
        return 500


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ActionExecutor:
    """
    Executes registered actions.

    Holds no per-invocation state: concurrent invocations share only the
    injected collaborators.
    """

    def __init__(
        self,
        run_sink: RunSink,
        event_bus: EventBus | None = None,
        registry: ActionRegistry | None = None,
        config: ExecutorConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._run_sink = run_sink
        self._event_bus = event_bus
        self._registry = registry
        self._config = config or ExecutorConfig()
        self._sleep = sleep
        self._logger = logger.bind(system="actuate.executor")

    async def execute_by_name(
        self,
        name: str,
        input: Any,
        **opts: Any,
    ) -> ActionResult:
        """Resolve `name` in the registry and execute it."""
        registry = opts.get("registry") or self._registry
        action = registry.get(name) if registry is not None else None
        if action is None:
            error = NotFound(f"Action {name!r} is not registered")
            return ActionResult(success=False, error=error.message, error_object=error)
        return await self.execute(action, input, **opts)

    async def execute(
        self,
        action: RegisteredAction,
        input: Any,
        *,
        trigger_type: str | None = None,
        request: Any = None,
        auth: AuthContext | Mapping[str, Any] | None = None,
        response: ResponseSink | None = None,
        registry: ActionRegistry | None = None,
        call_stack: tuple[str, ...] = (),
    ) -> ActionResult:
        trace_id = new_id()
        trigger = trigger_type or self._config.default_trigger_type
        registry = registry or self._registry
        retry = action.retry
        chain = (*call_stack, action.registry_key)

        action_logger = self._logger.bind(
            action=action.name,
            module=action.module_name,
            trace_id=trace_id,
        )

        try:
            auth_ctx = (
                auth if isinstance(auth, AuthContext) else AuthContext.model_validate(auth or {})
            )
        except ValidationError as exc:
            action_logger.warning("auth_context_invalid", errors=exc.error_count())
            rejected = Unauthorized("Invalid auth context").with_context(
                trace_id=trace_id,
                action_name=action.name,
                module_name=action.module_name,
            )
            return ActionResult(
                success=False,
                error=rejected.message,
                error_object=rejected,
                trace_id=trace_id,
                attempts=0,
            )

        async def invoke(name: str, nested_input: Any) -> Any:
            if name in chain:
                raise CircularDependencyError(name, list(chain)).with_context(
                    trace_id=trace_id,
                    action_name=action.name,
                    module_name=action.module_name,
                )
            target = registry.get(name) if registry is not None else None
            if target is None:
                raise NotFound(f"Action {name!r} is not registered")
            result = await self.execute(
                target,
                nested_input,
                trigger_type=NESTED_TRIGGER,
                request=request,
                auth=auth_ctx,
                response=response,
                registry=registry,
                call_stack=chain,
            )
            if not result.success:
                raise result.error_object or InternalError(result.error)
            return result.data

        ctx = ActionContext(
            trace_id=trace_id,
            logger=action_logger,
            auth=auth_ctx,
            event=EventEmitter(self._event_bus),
            trigger_type=trigger,
            invoke=invoke,
            retry=RetryInfo(attempt=1, max_attempts=retry.max_attempts),
            module=ModuleInfo(action.module_name) if action.module_name else None,
            request=request,
            response=response,
            registry=registry,
            call_stack=call_stack,
        )

        def record(
            status: str,
            attempt: int | None,
            started_at: int,
            started: float,
            output: Any = None,
            error: str | None = None,
        ) -> None:
            entry_id = trace_id if not attempt or attempt == 1 else f"{trace_id}-a{attempt}"
            self._run_sink.push_run(RunEntry(
                id=entry_id,
                action_name=action.name,
                module_name=action.module_name,
                trace_id=trace_id,
                trigger_type=trigger,
                status=status,
                input=safe_json(input),
                output=safe_json(split_meta(output)[0]) if output is not None else None,
                error=error,
                duration_ms=int((time.monotonic() - started) * 1000),
                started_at=started_at,
                attempt=attempt,
                max_attempts=retry.max_attempts,
            ))

        invocation_start = time.monotonic()

        # ── Guards (run once, never retried) ──────────────────────
        if action.guard_plan:
            guard_started_at = now_ms()
            try:
                await run_guards(action.guard_plan, ctx)
            except Exception as exc:
                message = _error_message(exc)
                action_logger.warning("guard_rejected", error=message)
                record("error", None, guard_started_at, invocation_start, error=message)
                return ActionResult(
                    success=False,
                    error=message,
                    error_object=exc,
                    trace_id=trace_id,
                    attempts=0,
                )

        # ── Handler under retry policy ────────────────────────────
        deadline_ms = self._config.retry_deadline_ms
        deadline = invocation_start + deadline_ms / 1000 if deadline_ms else None
        attempt = 1

        while True:
            ctx.retry = RetryInfo(attempt=attempt, max_attempts=retry.max_attempts)
            started_at = now_ms()
            started = time.monotonic()

            try:
                output = await action.definition.handler(input, ctx)
            except Exception as exc:
                message = _error_message(exc)
                retryable = is_retryable(exc) and self._approved_by(retry.retry_if, exc, action_logger)
                record("error", attempt, started_at, started, error=message)

                should_retry = retryable and attempt < retry.max_attempts
                delay_ms = retry.delay_ms(attempt) if should_retry else 0
                if should_retry and deadline is not None:
                    if time.monotonic() + delay_ms / 1000 > deadline:
                        action_logger.warning(
                            "retry_deadline_exceeded",
                            attempt=attempt,
                            deadline_ms=deadline_ms,
                        )
                        should_retry = False

                if not should_retry:
                    action_logger.error(
                        "action_failed",
                        attempt=attempt,
                        max_attempts=retry.max_attempts,
                        retryable=retryable,
                        error=exc if isinstance(exc, ActuateError) else message,
                    )
                    return ActionResult(
                        success=False,
                        error=message,
                        error_object=exc,
                        trace_id=trace_id,
                        attempts=attempt,
                    )

                action_logger.warning(
                    "action_retrying",
                    attempt=attempt,
                    max_attempts=retry.max_attempts,
                    delay_ms=delay_ms,
                    error=message,
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1
                continue

            record("success", attempt, started_at, started, output=output)
            action_logger.debug("action_succeeded", attempt=attempt)
            return ActionResult(
                success=True,
                data=output,
                trace_id=trace_id,
                attempts=attempt,
            )

    @staticmethod
    def _approved_by(
        retry_if: Callable[[Exception], bool] | None,
        exc: Exception,
        action_logger: Any,
    ) -> bool:
        if retry_if is None:
            return True
        try:
            return bool(retry_if(exc))
        except Exception as predicate_exc:
            action_logger.error("retry_if_failed", error=str(predicate_exc))
            return False
