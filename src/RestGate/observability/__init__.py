"""Structured telemetry events for the dispatcher and HTTP layer."""

from RestGate.observability.emitters import (
    EventEmitter,
    FileJsonlEmitter,
    LoggingEmitter,
    MemoryEmitter,
)
from RestGate.observability.events import (
    Event,
    EventContext,
    EventIds,
    EventSink,
    clear_context,
    emit_event,
    get_context,
    register_sink,
    set_context,
    unregister_sink,
)

__all__ = [
    "Event",
    "EventContext",
    "EventIds",
    "EventSink",
    "EventEmitter",
    "FileJsonlEmitter",
    "LoggingEmitter",
    "MemoryEmitter",
    "clear_context",
    "emit_event",
    "get_context",
    "register_sink",
    "set_context",
    "unregister_sink",
]
