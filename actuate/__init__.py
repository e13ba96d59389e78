"""
Actuate — declarative actions with guards, retries and composition.

Define an action once, group actions into modules, register them, lock the
registry, and execute them from any transport through one executor:

    @action("echo", input=EchoIn, output=EchoOut, guards=[authenticated()])
    async def echo(data: EchoIn, ctx: ActionContext) -> dict:
        return {"echoed": data.message}

    registry = ActionRegistry()
    registry.register_action(echo)
    registry.lock()

    executor = ActionExecutor(WriteBuffer(), EventBus(), registry)
    result = await executor.execute(registry.get("echo"), {"message": "hi"})
"""

from actuate.config import ActuateConfig, load_config
from actuate.core import triggers
from actuate.core.action import action, define, module
from actuate.core.errors import (
    ActionValidationError,
    ActuateError,
    BadRequest,
    CircularDependencyError,
    Conflict,
    ErrorKind,
    Forbidden,
    GuardError,
    InternalError,
    NonRetriableError,
    NotFound,
    NotImplementedYet,
    RegistryError,
    RegistryLockedError,
    ServiceUnavailable,
    TooManyRequests,
    Unauthorized,
    is_retryable,
)
from actuate.core.guards import (
    authenticated,
    has_permission,
    has_role,
    parallel,
    rate_limit,
    sequential,
)
from actuate.core.meta import TransportMetadata, with_meta
from actuate.core.registry import ActionRegistry, RegistryState
from actuate.core.types import AuthContext, RetryConfig, RunEntry
from actuate.runtime.context import ActionContext
from actuate.runtime.event_bus import EventBus
from actuate.runtime.executor import ActionExecutor, ActionResult
from actuate.runtime.write_buffer import WriteBuffer

__all__ = [
    "ActionContext",
    "ActionExecutor",
    "ActionRegistry",
    "ActionResult",
    "ActionValidationError",
    "ActuateConfig",
    "ActuateError",
    "AuthContext",
    "BadRequest",
    "CircularDependencyError",
    "Conflict",
    "ErrorKind",
    "EventBus",
    "Forbidden",
    "GuardError",
    "InternalError",
    "NonRetriableError",
    "NotFound",
    "NotImplementedYet",
    "RegistryError",
    "RegistryLockedError",
    "RegistryState",
    "RetryConfig",
    "RunEntry",
    "ServiceUnavailable",
    "TooManyRequests",
    "TransportMetadata",
    "Unauthorized",
    "WriteBuffer",
    "action",
    "authenticated",
    "define",
    "has_permission",
    "has_role",
    "is_retryable",
    "load_config",
    "module",
    "parallel",
    "rate_limit",
    "sequential",
    "triggers",
    "with_meta",
]
