"""Event sinks for the structured telemetry stream.

All emitters implement the simple ``emit(event: Event)`` interface and can be
attached with :func:`RestGate.observability.events.register_sink`.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path

from RestGate.observability.events import Event

logger = logging.getLogger(__name__)


# ============================================================================
# Base Emitter Class
# ============================================================================


class EventEmitter(ABC):
    """Abstract base for event sinks."""

    @abstractmethod
    def emit(self, event: Event) -> None:
        """Emit an event to this sink.

        Should not raise; emitter errors are logged but don't propagate.
        """

    def close(self) -> None:
        """Close the emitter and release resources. Safe to call multiple times."""


# ============================================================================
# Logging Emitter
# ============================================================================


class LoggingEmitter(EventEmitter):
    """Forward events to a stdlib logger, mapping WARN/ERROR levels."""

    _LEVEL_MAP = {"INFO": logging.INFO, "WARN": logging.WARNING, "ERROR": logging.ERROR}

    def __init__(self, logger_name: str = "RestGate.events", min_level: str = "INFO") -> None:
        self._logger = logging.getLogger(logger_name)
        self._min_level = self._LEVEL_MAP.get(min_level, logging.INFO)

    def emit(self, event: Event) -> None:
        level = self._LEVEL_MAP.get(event.level, logging.INFO)
        if level < self._min_level:
            return
        self._logger.log(level, event.type, extra={"extra_fields": event.to_dict()})


# ============================================================================
# File JSONL Emitter
# ============================================================================


class FileJsonlEmitter(EventEmitter):
    """Append-only JSONL file, one event per line."""

    def __init__(self, filepath: str | Path) -> None:
        self.filepath = Path(filepath)
        self.lock = threading.Lock()
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: Event) -> None:
        """Append event as JSON line to file."""
        try:
            with self.lock:
                with open(self.filepath, "a", encoding="utf-8") as f:
                    f.write(event.to_json() + "\n")
        except OSError as e:
            logger.error(f"Error emitting to file: {e}")


# ============================================================================
# In-memory Emitter
# ============================================================================


class MemoryEmitter(EventEmitter):
    """Keep the most recent events in memory (diagnostics and tests)."""

    def __init__(self, maxlen: int = 1000) -> None:
        self._events: deque[Event] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def emit(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    def events(self, type: str | None = None) -> list[Event]:
        """Return captured events, optionally filtered by type."""
        with self._lock:
            captured = list(self._events)
        if type is None:
            return captured
        return [event for event in captured if event.type == type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


__all__ = [
    "EventEmitter",
    "LoggingEmitter",
    "FileJsonlEmitter",
    "MemoryEmitter",
]
