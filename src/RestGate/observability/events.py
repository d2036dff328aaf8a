"""Structured telemetry events for the dispatcher.

Every event shares one envelope:

- ``ts``: emission time, ISO 8601 in UTC
- ``type``: dotted name such as ``net.request`` or ``ratelimit.cooldown``
- ``level``: ``INFO``, ``WARN`` or ``ERROR``
- ``run_id`` / ``config_hash``: correlation values from :func:`set_context`,
  falling back to a per-process id and ``"unknown"``
- ``context``: library version, platform, hostname and PID
- ``ids``: the ``request_id`` and ``bucket_key`` the event concerns
- ``payload``: fields specific to the event type

Sinks are plain objects with an ``emit(event)`` method. Without any sink,
events go to this module's logger at DEBUG level.
"""

import contextvars
import json
import logging
import os
import platform
import socket
import sys
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from RestGate._version import __version__

logger = logging.getLogger(__name__)

LEVELS = frozenset({"INFO", "WARN", "ERROR"})

_PROCESS_RUN_ID = uuid.uuid4().hex
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("restgate_run_id", default=None)
_config_hash: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "restgate_config_hash", default=None
)


@dataclass(frozen=True)
class EventIds:
    """Identifiers tying an event to one request and one bucket."""

    request_id: str | None = None
    bucket_key: str | None = None


@dataclass(frozen=True)
class EventContext:
    """Where the event was produced."""

    app_version: str
    os_name: str
    python_version: str
    hostname: str | None = None
    pid: int | None = None


@dataclass(frozen=True)
class Event:
    ts: str
    type: str
    level: str
    run_id: str
    config_hash: str
    context: EventContext
    ids: EventIds = field(default_factory=EventIds)
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        # keep payload values as given; asdict deep-copies them
        data["payload"] = self.payload
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class EventSink(Protocol):
    """Receiver for emitted events."""

    def emit(self, event: Event) -> None: ...


_context_cache: dict[int, EventContext] = {}


def _process_context() -> EventContext:
    pid = os.getpid()
    cached = _context_cache.get(pid)
    if cached is None:
        info = sys.version_info
        cached = EventContext(
            app_version=__version__,
            os_name=platform.system(),
            python_version=f"{info.major}.{info.minor}.{info.micro}",
            hostname=os.getenv("HOSTNAME") or socket.gethostname() or None,
            pid=pid,
        )
        _context_cache[pid] = cached
    return cached


def set_context(run_id: str | None = None, config_hash: str | None = None) -> None:
    """Attach correlation values to events emitted from the current context.

    Example:
        >>> set_context(run_id="bot-shard-0", config_hash="3f2a9c")
    """
    if run_id is not None:
        _run_id.set(run_id)
    if config_hash is not None:
        _config_hash.set(config_hash)


def get_context() -> dict[str, str | None]:
    return {"run_id": _run_id.get(), "config_hash": _config_hash.get()}


def clear_context() -> None:
    _run_id.set(None)
    _config_hash.set(None)


_sinks: list[EventSink] = []
_sinks_lock = threading.Lock()


def register_sink(sink: EventSink) -> None:
    """Start delivering events to ``sink``."""
    with _sinks_lock:
        _sinks.append(sink)


def unregister_sink(sink: EventSink) -> None:
    """Stop delivering events to ``sink``; unknown sinks are ignored."""
    with _sinks_lock:
        if sink in _sinks:
            _sinks.remove(sink)


def emit_event(
    type: str,
    level: str = "INFO",
    payload: dict[str, Any] | None = None,
    run_id: str | None = None,
    config_hash: str | None = None,
    request_id: str | None = None,
    bucket_key: str | None = None,
) -> Event:
    """Build an :class:`Event` and hand it to every registered sink.

    Args:
        type: Dotted event name, e.g. ``"ratelimit.retry"``
        level: ``INFO``, ``WARN`` or ``ERROR``
        payload: Fields specific to ``type``
        run_id: Overrides the context's run id
        config_hash: Overrides the context's config hash
        request_id: Request the event concerns
        bucket_key: Bucket the event concerns

    Raises:
        ValueError: If ``type`` is empty or ``level`` is not a known level.

    A sink that raises is logged and skipped; the remaining sinks still
    receive the event.
    """
    if not type:
        raise ValueError("Event type must not be empty")
    if level not in LEVELS:
        raise ValueError(f"Unknown event level {level!r}; expected one of {sorted(LEVELS)}")

    event = Event(
        ts=datetime.now(UTC).isoformat(),
        type=type,
        level=level,
        run_id=run_id or _run_id.get() or _PROCESS_RUN_ID,
        config_hash=config_hash or _config_hash.get() or "unknown",
        context=_process_context(),
        ids=EventIds(request_id=request_id, bucket_key=bucket_key),
        payload=payload or {},
    )

    with _sinks_lock:
        sinks = list(_sinks)
    if not sinks:
        logger.debug(event.type, extra={"extra_fields": event.to_dict()})
    for sink in sinks:
        try:
            sink.emit(event)
        except Exception as exc:
            logger.error("Event sink %s failed: %s", _class_name(sink), exc)

    return event


def _class_name(obj: object) -> str:
    return obj.__class__.__name__


__all__ = [
    "Event",
    "EventContext",
    "EventIds",
    "EventSink",
    "LEVELS",
    "set_context",
    "get_context",
    "clear_context",
    "register_sink",
    "unregister_sink",
    "emit_event",
]
