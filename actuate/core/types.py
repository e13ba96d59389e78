"""
Actuate — Core Types

Declarative types for actions, modules, triggers and retry policy, plus the
records the executor produces.

Design notes:
- ActionDefinition is immutable once created. The registry never mutates it;
  it wraps it in a RegisteredAction that carries the module-derived view
  (registry key, merged guard plan, prefixed trigger paths).
- Triggers are a tagged union on `type`. Only api and webhook triggers carry
  paths, and only those are rewritten with a module's api_prefix.
- RunEntry is transient. It is pushed to the audit sink and never retained.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Union

from pydantic import Field, model_validator

from actuate.core.guards.execution import GuardPlan, GuardSpec, Sequential, flatten
from actuate.primitives.common import ActuateBaseModel

if TYPE_CHECKING:
    from actuate.core.schema import SchemaValidator
    from actuate.runtime.context import ActionContext

# ─── Trigger Types ────────────────────────────────────────────────

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


class _Trigger(ActuateBaseModel):
    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class ApiTrigger(_Trigger):
    type: Literal["api"] = "api"
    method: HttpMethod
    path: str
    map: Callable[..., Any] | None = None


class EventTrigger(_Trigger):
    type: Literal["event"] = "event"
    event: str
    map: Callable[[Any], Any] | None = None


class CronTrigger(_Trigger):
    type: Literal["cron"] = "cron"
    schedule: str
    input: Callable[[], Any] | None = None


class ToolTrigger(_Trigger):
    type: Literal["tool"] = "tool"
    name: str
    description: str


class WebhookTrigger(_Trigger):
    type: Literal["webhook"] = "webhook"
    path: str
    verify: Callable[..., Any] | None = None
    map: Callable[[Any], Any] | None = None


TriggerConfig = Union[ApiTrigger, EventTrigger, CronTrigger, ToolTrigger, WebhookTrigger]


# ─── Retry Configuration ──────────────────────────────────────────


class RetryConfig(ActuateBaseModel):
    """
    Per-action retry policy.

    max_attempts counts the first call: 1 means no retries, 3 means one
    initial call plus two retries. retry_if runs after built-in classification
    and can only narrow it.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    max_attempts: int = Field(default=1, ge=1)
    backoff: Literal["fixed", "exponential"] = "exponential"
    backoff_ms: int = Field(default=1000, ge=0)
    max_backoff_ms: int = Field(default=30_000, ge=0)
    retry_if: Callable[[Exception], bool] | None = None

    def delay_ms(self, attempt: int) -> int:
        """Backoff before the attempt following `attempt` (1-indexed)."""
        if self.backoff == "fixed":
            return self.backoff_ms
        return min(self.backoff_ms * 2 ** (attempt - 1), self.max_backoff_ms)


# ─── Auth ─────────────────────────────────────────────────────────


class AuthContext(ActuateBaseModel):
    """Identity of the caller, as resolved by the transport before dispatch."""

    user_id: str | None = None
    role: str | None = None
    permissions: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extra(cls, data: Any) -> Any:
        """Keys outside the declared fields (tenant, claims) are kept under `extra`."""
        if not isinstance(data, Mapping):
            return data
        declared = {k: v for k, v in data.items() if k in cls.model_fields}
        undeclared = {k: v for k, v in data.items() if k not in cls.model_fields}
        if not undeclared:
            return declared
        explicit = declared.get("extra")
        if explicit is None or isinstance(explicit, Mapping):
            declared["extra"] = {**undeclared, **(explicit or {})}
        return declared

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


# ─── Action & Module Definitions ──────────────────────────────────

ActionHandler = Callable[[Any, "ActionContext"], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class ActionConfig:
    name: str
    input: Any
    output: Any
    guards: GuardSpec = field(default_factory=Sequential)
    description: str = ""
    triggers: tuple[TriggerConfig, ...] = ()
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Action name must not be empty")
        if "." in self.name:
            raise ValueError(
                f"Action name {self.name!r} may not contain '.'; "
                "dots separate module and action in registry keys"
            )


@dataclass(frozen=True)
class ActionDefinition:
    """A configured action: config plus its validation-wrapped handler."""

    config: ActionConfig
    handler: Callable[[Any, "ActionContext"], Awaitable[Any]]
    input_validator: SchemaValidator
    output_validator: SchemaValidator

    @property
    def name(self) -> str:
        return self.config.name


@dataclass(frozen=True)
class ModuleDefinition:
    """A named group of actions sharing an API prefix and a guard phase."""

    name: str
    actions: tuple[ActionDefinition, ...]
    guards: GuardSpec
    api_prefix: str = ""
    description: str = ""


@dataclass(frozen=True)
class RegisteredAction:
    """An action as the registry stores it, with module-level config applied."""

    definition: ActionDefinition
    module_name: str | None
    guard_plan: GuardPlan
    triggers: tuple[TriggerConfig, ...]
    registry_key: str

    @property
    def name(self) -> str:
        return self.definition.config.name

    @property
    def guards(self) -> list[Any]:
        """Every guard in execution order (module guards first)."""
        return flatten(self.guard_plan)

    @property
    def retry(self) -> RetryConfig:
        return self.definition.config.retry


# ─── Run Records ──────────────────────────────────────────────────


class RunEntry(ActuateBaseModel):
    """Audit record of a single execution attempt."""

    id: str
    action_name: str
    module_name: str | None = None
    trace_id: str
    trigger_type: str
    status: Literal["success", "error"]
    input: str | None = None
    output: str | None = None
    error: str | None = None
    duration_ms: int
    started_at: int
    attempt: int | None = None
    max_attempts: int | None = None
