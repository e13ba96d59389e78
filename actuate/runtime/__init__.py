"""
Actuate — Runtime

Invocation-time machinery: the executor, the per-invocation context, the
in-process event bus and the run audit sink.
"""

from actuate.runtime.context import ActionContext, EventEmitter, ModuleInfo, RetryInfo
from actuate.runtime.event_bus import EventBus
from actuate.runtime.executor import ActionExecutor, ActionResult
from actuate.runtime.write_buffer import RunSink, WriteBuffer

__all__ = [
    "ActionContext",
    "ActionExecutor",
    "ActionResult",
    "EventBus",
    "EventEmitter",
    "ModuleInfo",
    "RetryInfo",
    "RunSink",
    "WriteBuffer",
]
