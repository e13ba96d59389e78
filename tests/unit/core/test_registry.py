"""
Unit tests for ActionRegistry.

Tests registration, module namespacing, lock semantics and hot reload.
"""

from __future__ import annotations

import pytest

from actuate.core import triggers
from actuate.core.action import action, module
from actuate.core.errors import DuplicateActionError, RegistryError, RegistryLockedError
from actuate.core.guards import parallel
from actuate.core.registry import ActionRegistry, RegistryState


# ─── Fixtures ─────────────────────────────────────────────────────


def _make_action(name: str, **kwargs):
    @action(name, input=dict, output=dict, **kwargs)
    async def handler(data: dict, ctx) -> dict:
        return data

    return handler


def _guard(ctx) -> None:
    return None


# ─── Tests: Registration ──────────────────────────────────────────


def test_register_and_get():
    registry = ActionRegistry()
    definition = _make_action("ping")

    registered = registry.register_action(definition)

    assert registry.get("ping") is registered
    assert registered.definition is definition
    assert registered.module_name is None
    assert registered.registry_key == "ping"
    assert "ping" in registry
    assert len(registry) == 1
    assert registry.size == 1


def test_get_missing_returns_none():
    assert ActionRegistry().get("nope") is None


def test_register_duplicate_raises():
    registry = ActionRegistry()
    registry.register_action(_make_action("ping"))
    with pytest.raises(DuplicateActionError, match="already registered"):
        registry.register_action(_make_action("ping"))


def test_registered_action_exposes_guards_and_retry():
    registry = ActionRegistry()
    registered = registry.register_action(
        _make_action("ping", guards=[_guard], retry={"max_attempts": 4})
    )

    assert registered.guards == [_guard]
    assert registered.retry.max_attempts == 4


def test_get_all_and_keys():
    registry = ActionRegistry()
    registry.register_action(_make_action("b"))
    registry.register_action(_make_action("a"))

    assert registry.keys() == ["a", "b"]
    assert {r.name for r in registry.get_all()} == {"a", "b"}
    assert {r.name for r in registry} == {"a", "b"}


# ─── Tests: Modules ───────────────────────────────────────────────


def test_register_module_namespaces_keys():
    registry = ActionRegistry()
    mod = module("users", [_make_action("create"), _make_action("delete")])

    registered = registry.register_module(mod)

    assert [r.registry_key for r in registered] == ["users.create", "users.delete"]
    assert registry.get("users.create").module_name == "users"
    assert registry.get("create") is None


def test_module_api_prefix_applies_to_http_triggers_only():
    registry = ActionRegistry()
    definition = _make_action(
        "create",
        triggers=[
            triggers.api("POST", "/create"),
            triggers.webhook("/hook"),
            triggers.event("user.signup"),
        ],
    )
    registry.register_module(module("users", [definition], api_prefix="/users/"))

    api_trigger, webhook_trigger, event_trigger = registry.get("users.create").triggers
    assert api_trigger.path == "/users/create"
    assert webhook_trigger.path == "/users/hook"
    assert event_trigger.event == "user.signup"
    # The definition itself is never mutated
    assert definition.config.triggers[0].path == "/create"


def test_module_guards_form_first_phase():
    def module_guard(ctx) -> None:
        return None

    registry = ActionRegistry()
    mod = module(
        "admin",
        [_make_action("purge", guards=[_guard])],
        guards=parallel([module_guard]),
    )
    registry.register_module(mod)

    plan = registry.get("admin.purge").guard_plan
    assert [phase.mode for phase in plan] == ["parallel", "sequential"]
    assert registry.get("admin.purge").guards == [module_guard, _guard]


def test_module_registration_is_all_or_nothing():
    registry = ActionRegistry()
    mod = module("users", [_make_action("create"), _make_action("create")])

    with pytest.raises(DuplicateActionError, match="users.create"):
        registry.register_module(mod)

    assert len(registry) == 0


def test_module_collides_with_existing_key():
    registry = ActionRegistry()
    registry.register_module(module("users", [_make_action("create")]))

    with pytest.raises(DuplicateActionError):
        registry.register_module(module("users", [_make_action("list"), _make_action("create")]))

    assert registry.keys() == ["users.create"]


def test_module_name_validation():
    with pytest.raises(ValueError):
        module("", [])
    with pytest.raises(ValueError):
        module("a.b", [])
    with pytest.raises(ValueError, match="must start with '/'"):
        module("users", [], api_prefix="users")


# ─── Tests: Lock ──────────────────────────────────────────────────


def test_starts_loading():
    registry = ActionRegistry()
    assert registry.get_state() == RegistryState.LOADING
    assert registry.is_locked() is False


def test_lock_rejects_mutations():
    registry = ActionRegistry()
    registry.register_action(_make_action("ping"))
    registry.lock()

    assert registry.is_locked() is True
    assert registry.state == RegistryState.LOCKED

    with pytest.raises(RegistryLockedError, match="Registry is locked"):
        registry.register_action(_make_action("pong"))
    with pytest.raises(RegistryLockedError, match="Registry is locked"):
        registry.register_module(module("m", [_make_action("x")]))
    with pytest.raises(RegistryLockedError, match="Registry is locked"):
        registry.clear()


def test_reads_allowed_after_lock():
    registry = ActionRegistry()
    registry.register_action(_make_action("ping"))
    registry.lock()

    assert registry.get("ping") is not None
    assert registry.keys() == ["ping"]
    assert len(registry.get_all()) == 1


def test_lock_is_idempotent():
    registry = ActionRegistry()
    registry.lock()
    registry.lock()
    assert registry.is_locked() is True


def test_clear_removes_everything():
    registry = ActionRegistry()
    registry.register_action(_make_action("ping"))
    registry.clear()
    assert len(registry) == 0


# ─── Tests: Hot Reload ────────────────────────────────────────────


def test_reload_commit_replaces_actions():
    registry = ActionRegistry()
    registry.register_action(_make_action("old"))
    version = registry.version

    registry.begin_reload()
    assert registry.get_state() == RegistryState.RELOADING

    registry.register_action(_make_action("new"))
    # Readers keep seeing the live set until commit
    assert registry.keys() == ["old"]
    assert registry.get("new") is None
    assert registry.staged_keys() == ["new"]

    registry.commit_reload()

    assert registry.keys() == ["new"]
    assert registry.get_state() == RegistryState.LOADING
    assert registry.version == version + 1
    assert registry.staged_keys() == []


def test_reload_allows_reregistering_live_keys():
    registry = ActionRegistry()
    registry.register_action(_make_action("ping"))

    registry.begin_reload()
    replacement = registry.register_action(_make_action("ping"))
    registry.commit_reload()

    assert registry.get("ping") is replacement


def test_reload_rollback_restores_snapshot():
    registry = ActionRegistry()
    original = registry.register_action(_make_action("old"))
    version = registry.version

    registry.begin_reload()
    registry.register_action(_make_action("broken"))
    registry.rollback_reload()

    assert registry.keys() == ["old"]
    assert registry.get("old") is original
    assert registry.version == version
    assert registry.get_state() == RegistryState.LOADING


def test_snapshot_is_consumed_once():
    registry = ActionRegistry()
    registry.begin_reload()
    registry.commit_reload()

    with pytest.raises(RegistryError):
        registry.rollback_reload()
    with pytest.raises(RegistryError):
        registry.commit_reload()


def test_reload_refused_when_locked():
    registry = ActionRegistry()
    registry.lock()
    with pytest.raises(RegistryLockedError):
        registry.begin_reload()


def test_reload_cannot_nest():
    registry = ActionRegistry()
    registry.begin_reload()
    with pytest.raises(RegistryError, match="already in progress"):
        registry.begin_reload()


def test_lock_refused_during_reload():
    registry = ActionRegistry()
    registry.begin_reload()
    with pytest.raises(RegistryError):
        registry.lock()


def test_commit_and_rollback_require_reload():
    registry = ActionRegistry()
    with pytest.raises(RegistryError):
        registry.commit_reload()
    with pytest.raises(RegistryError):
        registry.rollback_reload()


def test_version_increments_on_every_swap():
    registry = ActionRegistry()
    start = registry.version
    registry.register_action(_make_action("a"))
    registry.register_module(module("m", [_make_action("b")]))
    assert registry.version == start + 2


def test_previously_read_view_is_unaffected_by_later_registration():
    registry = ActionRegistry()
    registry.register_action(_make_action("a"))
    before = registry.get_all()

    registry.register_action(_make_action("b"))

    assert [r.name for r in before] == ["a"]
