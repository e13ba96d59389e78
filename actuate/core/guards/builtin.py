"""
Actuate — Standard Guards

Factories for the checks most actions need: authentication, role,
permission, and a per-caller rate limit. Each factory returns a guard
callable; guards raise GuardError to reject.
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from actuate.core.errors import GuardError
from actuate.core.guards.execution import GuardFn

if TYPE_CHECKING:
    from actuate.runtime.context import ActionContext

logger = structlog.get_logger()


def authenticated() -> GuardFn:
    """Reject anonymous callers with 401."""

    def guard(ctx: ActionContext) -> None:
        if not ctx.auth.user_id:
            raise GuardError("Unauthorized", 401)

    return guard


def has_role(role: str) -> GuardFn:
    """Require an authenticated caller holding `role`."""

    def guard(ctx: ActionContext) -> None:
        if not ctx.auth.user_id:
            raise GuardError("Unauthorized", 401)
        if ctx.auth.role != role:
            raise GuardError("Forbidden", 403)

    return guard


def has_permission(permission: str) -> GuardFn:
    """Require an authenticated caller granted `permission`."""

    def guard(ctx: ActionContext) -> None:
        if not ctx.auth.user_id:
            raise GuardError("Unauthorized", 401)
        if not ctx.auth.has_permission(permission):
            raise GuardError("Forbidden", 403)

    return guard


class SlidingWindowLimiter:
    """
    Sliding-window counter keyed by caller.

    In-memory and per-process: counters do not survive restarts and do not
    coordinate across replicas.
    """

    def __init__(self, limit: int, window_ms: int) -> None:
        if limit < 1 or window_ms < 1:
            raise ValueError("rate limit and window must be positive")
        self.limit = limit
        self.window_ms = window_ms
        # key → deque of hit timestamps (monotonic seconds)
        self._windows: dict[str, deque[float]] = defaultdict(deque)

    def hit(self, key: str) -> bool:
        """Record a hit for `key`; return False if the window is already full."""
        window = self._windows[key]
        now = time.monotonic()
        cutoff = now - self.window_ms / 1000

        # Evict expired timestamps
        while window and window[0] <= cutoff:
            window.popleft()

        if len(window) >= self.limit:
            return False
        window.append(now)
        return True

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)


def rate_limit(
    limit: int,
    window_ms: int,
    key: Callable[[ActionContext], str] | None = None,
) -> GuardFn:
    """Allow at most `limit` calls per `window_ms` per caller; reject the rest with 429."""
    limiter = SlidingWindowLimiter(limit, window_ms)

    def guard(ctx: ActionContext) -> None:
        caller = key(ctx) if key else (ctx.auth.user_id or "anonymous")
        if not limiter.hit(caller):
            logger.warning(
                "rate_limit_exceeded",
                key=caller,
                limit=limit,
                window_ms=window_ms,
            )
            raise GuardError("Too Many Requests", 429)

    guard.limiter = limiter  # type: ignore[attr-defined]
    return guard
