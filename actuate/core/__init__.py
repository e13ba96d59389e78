"""
Actuate — Core

Definition-time primitives: actions, modules, guards, triggers, schemas and
the registry that holds them.
"""

from actuate.core import triggers
from actuate.core.action import action, define, module
from actuate.core.registry import ActionRegistry, RegistryState
from actuate.core.types import (
    ActionConfig,
    ActionDefinition,
    AuthContext,
    ModuleDefinition,
    RegisteredAction,
    RetryConfig,
    RunEntry,
)

__all__ = [
    "ActionConfig",
    "ActionDefinition",
    "ActionRegistry",
    "AuthContext",
    "ModuleDefinition",
    "RegisteredAction",
    "RegistryState",
    "RetryConfig",
    "RunEntry",
    "action",
    "define",
    "module",
    "triggers",
]
