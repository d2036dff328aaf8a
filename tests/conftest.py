# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "isolate-environment",
#       "name": "_isolate_environment",
#       "anchor": "function-isolate-environment",
#       "kind": "function"
#     },
#     {
#       "id": "make-dispatcher",
#       "name": "make_dispatcher",
#       "anchor": "function-make-dispatcher",
#       "kind": "function"
#     },
#     {
#       "id": "memory-sink",
#       "name": "memory_sink",
#       "anchor": "function-memory-sink",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Shared fixtures: environment isolation for settings and singletons,
dispatchers wired to a scripted MockTransport, and an in-memory telemetry
sink.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Generator, List

import pytest

from RestGate.dispatch import Dispatcher, reset_dispatcher
from RestGate.network.client import reset_http_client
from RestGate.observability import MemoryEmitter, register_sink, unregister_sink
from RestGate.settings import reset_settings
from tests.fixtures.http_mocking import (  # noqa: F401
    ScriptedApi,
    http_mock,
    scripted_api,
)
from tests.fixtures.settings_factory import make_settings


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Strip ``RESTGATE_*`` variables and reset process-wide singletons."""
    for name in list(os.environ):
        if name.startswith("RESTGATE_"):
            monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_dispatcher()
    reset_http_client()
    reset_settings()


@pytest.fixture
def make_dispatcher(
    scripted_api: ScriptedApi,
) -> Generator[Callable[..., Dispatcher], None, None]:
    """Factory building dispatchers on ``scripted_api``; all are closed at teardown."""
    created: List[Dispatcher] = []

    def _make(**overrides: Any) -> Dispatcher:
        dispatcher = Dispatcher(make_settings(**overrides), client=scripted_api.client())
        created.append(dispatcher)
        return dispatcher

    yield _make

    for dispatcher in created:
        dispatcher.close()


@pytest.fixture
def memory_sink() -> Generator[MemoryEmitter, None, None]:
    """Register an in-memory telemetry sink for the duration of a test."""
    sink = MemoryEmitter()
    register_sink(sink)
    yield sink
    unregister_sink(sink)
