"""
Actuate — Action Registry

The registry maps registry keys to RegisteredActions. The loader populates it
at startup; the transports (HTTP server, scheduler, tool service, event
listener) read from it at dispatch time.

Registry keys:
  Standalone actions register under their bare name ("createUser").
  Module actions register under "{module}.{action}" ("billing.createInvoice").

Lifecycle:
  LOADING   — initial; registration, clear and reload are allowed
  LOCKED    — terminal; every mutation fails, reads keep working
  RELOADING — dev-mode hot swap in progress; holds exactly one staged map

  LOADING → LOCKED            lock()
  LOADING → RELOADING         begin_reload()
  RELOADING → LOADING         commit_reload() | rollback_reload()

Snapshot isolation:
  The live map is never mutated in place. Each mutation builds a new map and
  swaps the pointer, so a concurrent reader sees either the old set or the new
  one, never a half-built one. During a reload, registrations go to a staged
  map while reads keep serving the live one; commit_reload() swaps the staged
  map in and rollback_reload() drops it. Mutation itself is single-writer:
  callers serialise registration and reloads.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from types import MappingProxyType

import structlog

from actuate.core.errors import DuplicateActionError, RegistryError, RegistryLockedError
from actuate.core.guards.execution import merge_guards
from actuate.core.types import (
    ActionDefinition,
    ApiTrigger,
    ModuleDefinition,
    RegisteredAction,
    TriggerConfig,
    WebhookTrigger,
)

logger = structlog.get_logger()

_EMPTY: Mapping[str, RegisteredAction] = MappingProxyType({})


class RegistryState(enum.StrEnum):
    LOADING = "loading"
    LOCKED = "locked"
    RELOADING = "reloading"


def module_key(module_name: str, action_name: str) -> str:
    return f"{module_name}.{action_name}"


def _prefix_triggers(
    triggers: tuple[TriggerConfig, ...],
    api_prefix: str,
) -> tuple[TriggerConfig, ...]:
    """Apply a module's api_prefix to the path of API and webhook triggers."""
    if not api_prefix:
        return triggers
    return tuple(
        trigger.model_copy(update={"path": f"{api_prefix}{trigger.path}"})
        if isinstance(trigger, (ApiTrigger, WebhookTrigger))
        else trigger
        for trigger in triggers
    )


class ActionRegistry:
    """
    Central registry of all actions and modules.

    Built during startup, locked before serving, queried at dispatch.
    """

    def __init__(self) -> None:
        self._actions: Mapping[str, RegisteredAction] = _EMPTY
        self._state = RegistryState.LOADING
        # The map being rebuilt during a reload; None outside RELOADING
        self._staged: Mapping[str, RegisteredAction] | None = None
        self._version = 0
        self._logger = logger.bind(system="actuate.registry")

    # ─── State ────────────────────────────────────────────────────

    @property
    def state(self) -> RegistryState:
        return self._state

    def get_state(self) -> RegistryState:
        return self._state

    def is_locked(self) -> bool:
        return self._state == RegistryState.LOCKED

    @property
    def version(self) -> int:
        """Increments every time the live map is replaced."""
        return self._version

    def _ensure_mutable(self, operation: str) -> None:
        if self._state == RegistryState.LOCKED:
            raise RegistryLockedError(operation)

    def _target(self) -> Mapping[str, RegisteredAction]:
        """The map registrations go to: the staged one while reloading, else the live one."""
        return self._staged if self._staged is not None else self._actions

    def _write(self, actions: dict[str, RegisteredAction]) -> None:
        if self._state == RegistryState.RELOADING:
            self._staged = MappingProxyType(actions)
        else:
            self._swap(actions)

    def _swap(self, actions: Mapping[str, RegisteredAction]) -> None:
        self._actions = MappingProxyType(dict(actions))
        self._version += 1

    # ─── Registration ─────────────────────────────────────────────

    def register_action(self, definition: ActionDefinition) -> RegisteredAction:
        """
        Register a standalone action under its bare name.

        Raises RegistryLockedError once locked, DuplicateActionError if the
        name is already taken.
        """
        self._ensure_mutable("register action")
        key = definition.config.name
        current = self._target()
        if key in current:
            raise DuplicateActionError(key)

        registered = RegisteredAction(
            definition=definition,
            module_name=None,
            guard_plan=merge_guards(None, definition.config.guards),
            triggers=definition.config.triggers,
            registry_key=key,
        )
        self._write({**current, key: registered})
        self._logger.debug("action_registered", key=key)
        return registered

    def register_module(self, mod: ModuleDefinition) -> list[RegisteredAction]:
        """
        Register every action of a module under "{module}.{action}".

        Module guards run before each action's own guards. All-or-nothing:
        a collision anywhere in the module registers none of its actions.
        """
        self._ensure_mutable("register module")
        current = self._target()

        staged: dict[str, RegisteredAction] = {}
        for definition in mod.actions:
            key = module_key(mod.name, definition.config.name)
            if key in current or key in staged:
                raise DuplicateActionError(key, module_name=mod.name)
            staged[key] = RegisteredAction(
                definition=definition,
                module_name=mod.name,
                guard_plan=merge_guards(mod.guards, definition.config.guards),
                triggers=_prefix_triggers(definition.config.triggers, mod.api_prefix),
                registry_key=key,
            )

        self._write({**current, **staged})
        self._logger.debug("module_registered", module=mod.name, actions=len(staged))
        return list(staged.values())

    def clear(self) -> None:
        """Drop every registered action (the staged set, while reloading)."""
        self._ensure_mutable("clear")
        self._write({})

    def lock(self) -> None:
        """Make the registry immutable. Idempotent."""
        if self._state == RegistryState.LOCKED:
            return
        if self._state == RegistryState.RELOADING:
            raise RegistryError("Cannot lock while a reload is in progress")
        self._state = RegistryState.LOCKED
        self._logger.info("registry_locked", actions=len(self._actions))

    # ─── Hot Reload ───────────────────────────────────────────────

    def begin_reload(self) -> None:
        """
        Start rebuilding into an empty staged map.

        Readers keep seeing the current actions until commit_reload().
        """
        self._ensure_mutable("begin reload")
        if self._state == RegistryState.RELOADING:
            raise RegistryError("A reload is already in progress")
        self._staged = _EMPTY
        self._state = RegistryState.RELOADING
        self._logger.info("registry_reload_started", live_actions=len(self._actions))

    def commit_reload(self) -> None:
        """Atomically replace the live actions with the staged ones."""
        if self._state != RegistryState.RELOADING or self._staged is None:
            raise RegistryError(f"Cannot commit reload: registry is {self._state.value}")
        self._swap(self._staged)
        self._staged = None
        self._state = RegistryState.LOADING
        self._logger.info("registry_reload_committed", actions=len(self._actions))

    def rollback_reload(self) -> None:
        """Discard the staged actions; the live set is left exactly as it was."""
        if self._state != RegistryState.RELOADING or self._staged is None:
            raise RegistryError("Cannot roll back: no reload in progress")
        discarded = len(self._staged)
        self._staged = None
        self._state = RegistryState.LOADING
        self._logger.warning("registry_reload_rolled_back", discarded=discarded)

    def staged_keys(self) -> list[str]:
        """Keys registered so far in the current reload."""
        return sorted(self._staged.keys()) if self._staged is not None else []

    # ─── Reads (allowed in every state, always the live map) ──────

    def get(self, name: str) -> RegisteredAction | None:
        """Look up an action by registry key."""
        return self._actions.get(name)

    def get_all(self) -> list[RegisteredAction]:
        return list(self._actions.values())

    def keys(self) -> list[str]:
        return sorted(self._actions.keys())

    @property
    def size(self) -> int:
        return len(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __iter__(self) -> Iterator[RegisteredAction]:
        return iter(list(self._actions.values()))

    def __repr__(self) -> str:
        return f"<ActionRegistry state={self._state.value} actions={self.keys()}>"
