"""
Actuate — Guards

Pre-handler checks that can abort an invocation, and the composition rules
that decide their order.
"""

from actuate.core.guards.builtin import (
    SlidingWindowLimiter,
    authenticated,
    has_permission,
    has_role,
    rate_limit,
)
from actuate.core.guards.execution import (
    GuardFn,
    GuardPlan,
    GuardSpec,
    Parallel,
    Sequential,
    merge_guards,
    normalize_guards,
    parallel,
    run_guards,
    sequential,
)

__all__ = [
    "GuardFn",
    "GuardPlan",
    "GuardSpec",
    "Parallel",
    "Sequential",
    "SlidingWindowLimiter",
    "authenticated",
    "has_permission",
    "has_role",
    "merge_guards",
    "normalize_guards",
    "parallel",
    "rate_limit",
    "run_guards",
    "sequential",
]
