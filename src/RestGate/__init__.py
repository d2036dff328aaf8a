# === NAVMAP v1 ===
# {
#   "module": "RestGate",
#   "purpose": "Package initialization for RestGate",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for the RestGate rate-limited REST dispatcher.

Callers submit HTTP-shaped requests from any thread; RestGate queues them per
rate-limit bucket, honours the server's per-bucket and global limits, retries
transient failures, and hands back either a response or a terminal error.
Attributes are resolved lazily so importing the package stays cheap.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

from RestGate._version import __version__

_EXPORT_MAP = {
    # dispatch
    "Dispatcher": "RestGate.dispatch",
    "get_dispatcher": "RestGate.dispatch",
    "close_dispatcher": "RestGate.dispatch",
    "reset_dispatcher": "RestGate.dispatch",
    # scheduling
    "Scheduler": "RestGate.scheduler",
    "PendingReply": "RestGate.scheduler",
    # requests
    "Request": "RestGate.network.request",
    "MultipartBody": "RestGate.network.request",
    "FilePart": "RestGate.network.request",
    # settings
    "RestGateSettings": "RestGate.settings",
    "get_settings": "RestGate.settings",
    "reset_settings": "RestGate.settings",
    # cancellation
    "CancellationToken": "RestGate.cancellation",
    "CancellationTokenGroup": "RestGate.cancellation",
    # errors
    "RestGateError": "RestGate.errors",
    "ConfigurationError": "RestGate.errors",
    "ApiError": "RestGate.errors",
    "ClientError": "RestGate.errors",
    "ServerError": "RestGate.errors",
    "TransportError": "RestGate.errors",
    "DecodeError": "RestGate.errors",
    "RequestTimeout": "RestGate.errors",
    "RequestCancelled": "RestGate.errors",
    "DispatcherClosed": "RestGate.errors",
    # logging
    "setup_logging": "RestGate.logging_utils",
}

__all__ = [*_EXPORT_MAP, "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from RestGate.cancellation import CancellationToken, CancellationTokenGroup
    from RestGate.dispatch import Dispatcher, close_dispatcher, get_dispatcher, reset_dispatcher
    from RestGate.errors import (
        ApiError,
        ClientError,
        ConfigurationError,
        DecodeError,
        DispatcherClosed,
        RequestCancelled,
        RequestTimeout,
        RestGateError,
        ServerError,
        TransportError,
    )
    from RestGate.logging_utils import setup_logging
    from RestGate.network.request import FilePart, MultipartBody, Request
    from RestGate.scheduler import PendingReply, Scheduler
    from RestGate.settings import RestGateSettings, get_settings, reset_settings


def __getattr__(name: str) -> Any:
    module_name = _EXPORT_MAP.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(import_module(module_name), name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
