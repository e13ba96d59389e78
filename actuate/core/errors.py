"""
Actuate — Error Taxonomy & Retry Classification

Every error the execution core raises or understands is an ActuateError and
carries an explicit ErrorKind tag. Retry classification is a pure match over
that closed set of kinds — never over class names.

Kinds:
  VALIDATION     — input/output schema mismatch (never retried)
  GUARD          — authorization / rate-limit rejection (never retried)
  CLIENT         — domain error with a 4xx status (never retried)
  SERVER         — domain error with a 5xx status (retried per policy)
  CIRCULAR       — action composition cycle (never retried)
  NON_RETRIABLE  — explicit opt-out from retries

Handlers may raise any of the domain errors below; transports map them onto
their own protocol via status_code.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field

from actuate.primitives.common import ActuateBaseModel


class ErrorKind(enum.StrEnum):
    VALIDATION = "validation"
    GUARD = "guard"
    CLIENT = "client"
    SERVER = "server"
    CIRCULAR = "circular"
    NON_RETRIABLE = "non_retriable"


class ErrorContext(ActuateBaseModel):
    """Debugging metadata attached to an error."""

    trace_id: str | None = None
    action_name: str | None = None
    module_name: str | None = None
    user_id: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    def merged(self, other: ErrorContext) -> ErrorContext:
        data = self.model_dump(exclude_none=True)
        update = other.model_dump(exclude_none=True)
        extra = {**data.pop("extra", {}), **update.pop("extra", {})}
        return ErrorContext(**{**data, **update, "extra": extra})


class ActuateError(Exception):
    """
    Base class for all errors with a transport status.

    The kind is derived from the status code unless a subclass pins it.
    """

    kind_override: ErrorKind | None = None
    default_message: str = "Internal Server Error"
    default_status: int = 500

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message if message is not None else self.default_message
        super().__init__(self.message)
        self.status_code = status_code if status_code is not None else self.default_status
        self.context = context

    @property
    def kind(self) -> ErrorKind:
        if self.kind_override is not None:
            return self.kind_override
        return ErrorKind.SERVER if self.status_code >= 500 else ErrorKind.CLIENT

    def with_context(self, context: ErrorContext | None = None, **fields: Any) -> ActuateError:
        """Return a copy of this error with context merged in."""
        incoming = context or ErrorContext()
        if fields:
            incoming = incoming.merged(ErrorContext(**fields))
        # Copy without re-running __init__; subclasses have differing signatures
        clone = type(self).__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone.args = self.args
        clone.__traceback__ = self.__traceback__
        clone.context = self.context.merged(incoming) if self.context else incoming
        return clone

    def to_dict(self) -> dict[str, Any]:
        """Structured payload for logging and transport error bodies."""
        return {
            "name": type(self).__name__,
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context.model_dump(exclude_none=True) if self.context else None,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} status={self.status_code} message={self.message!r}>"


# ─── Domain errors ────────────────────────────────────────────────


class BadRequest(ActuateError):
    default_message = "Bad Request"
    default_status = 400


class Unauthorized(ActuateError):
    default_message = "Unauthorized"
    default_status = 401


class Forbidden(ActuateError):
    default_message = "Forbidden"
    default_status = 403


class NotFound(ActuateError):
    default_message = "Not Found"
    default_status = 404


class Conflict(ActuateError):
    default_message = "Conflict"
    default_status = 409


class TooManyRequests(ActuateError):
    default_message = "Too Many Requests"
    default_status = 429


class InternalError(ActuateError):
    default_message = "Internal Server Error"
    default_status = 500


class NotImplementedYet(ActuateError):
    default_message = "Not Implemented"
    default_status = 501


class ServiceUnavailable(ActuateError):
    default_message = "Service Unavailable"
    default_status = 503


# ─── Framework errors ─────────────────────────────────────────────


class FieldError(ActuateBaseModel):
    """One schema violation: where it happened and why."""

    path: str
    message: str


class ActionValidationError(ActuateError):
    """Raised when action input or output fails schema validation."""

    kind_override = ErrorKind.VALIDATION
    default_status = 400

    def __init__(
        self,
        phase: str,
        field_errors: list[FieldError],
        context: ErrorContext | None = None,
    ) -> None:
        self.phase = phase
        self.field_errors = list(field_errors)
        summary = "; ".join(f"{e.path}: {e.message}" for e in self.field_errors)
        # Output mismatches are the server's fault, input mismatches the caller's
        status = 400 if phase == "input" else 500
        super().__init__(f"Action {phase} validation failed: {summary}", status, context)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["phase"] = self.phase
        payload["field_errors"] = [e.model_dump() for e in self.field_errors]
        return payload


class GuardError(ActuateError):
    """Raised by a guard to abort an invocation before the handler runs."""

    kind_override = ErrorKind.GUARD
    default_message = "Forbidden"
    default_status = 403


class CircularDependencyError(ActuateError):
    """Raised when an action calls (transitively) an ancestor still in flight."""

    kind_override = ErrorKind.CIRCULAR

    def __init__(
        self,
        action_name: str,
        call_stack: list[str],
        context: ErrorContext | None = None,
    ) -> None:
        self.action_name = action_name
        self.call_stack = list(call_stack)
        super().__init__(
            f"Circular dependency detected: {' → '.join(self.chain)}",
            500,
            context,
        )

    @property
    def chain(self) -> list[str]:
        """The full cycle, ending with the re-entered action."""
        return [*self.call_stack, self.action_name]


class NonRetriableError(ActuateError):
    """Raise from a handler to fail immediately without further attempts."""

    kind_override = ErrorKind.NON_RETRIABLE
    default_message = "Non-Retriable Error"
    default_status = 400


class SchemaContractError(ValueError):
    """A static schema contract was violated at action definition time."""


class RegistryError(RuntimeError):
    """A registry mutation was refused."""


class RegistryLockedError(RegistryError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"Registry is locked: cannot {operation}")
        self.operation = operation


class DuplicateActionError(RegistryError):
    def __init__(self, key: str, module_name: str | None = None) -> None:
        suffix = f" (module: {module_name})" if module_name else ""
        super().__init__(f"Action {key!r} is already registered{suffix}")
        self.key = key


# ─── Retry Classification ─────────────────────────────────────────

_NEVER_RETRY: frozenset[ErrorKind] = frozenset({
    ErrorKind.VALIDATION,
    ErrorKind.GUARD,
    ErrorKind.CLIENT,
    ErrorKind.CIRCULAR,
    ErrorKind.NON_RETRIABLE,
})


def classify(error: object) -> ErrorKind | None:
    """Return the error's kind, or None for errors outside the taxonomy."""
    if isinstance(error, ActuateError):
        return error.kind
    return None


def is_retryable(error: object) -> bool:
    """
    Decide whether a failed attempt may be retried.

    Unknown exceptions are assumed transient. Anything that is not an
    Exception (interpreter exit, cancellation, or a foreign object) is not.
    """
    if not isinstance(error, Exception):
        return False
    kind = classify(error)
    if kind is None:
        return True
    return kind not in _NEVER_RETRY
