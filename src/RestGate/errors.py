"""Exception hierarchy surfaced by the RestGate dispatcher.

Callers only ever observe a successful response or one of the terminal
errors below. Rate-limit rejections and transient failures are absorbed by
the scheduler; by the time an exception reaches caller code the request has
either been rejected by the server, exhausted its retry budget, waited too
long, or been cancelled. The hierarchy lets callers react to broad
categories (``ApiError`` vs. ``TransportError``) while still inspecting the
status code and server message when they need to.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "RestGateError",
    "ConfigurationError",
    "ApiError",
    "ClientError",
    "ServerError",
    "TransportError",
    "DecodeError",
    "RequestTimeout",
    "RequestCancelled",
    "DispatcherClosed",
]


class RestGateError(RuntimeError):
    """Base exception for every terminal dispatcher failure."""


class ConfigurationError(RestGateError):
    """Raised when settings or credentials are invalid."""


class ApiError(RestGateError):
    """Raised when the remote service answered with a failing status code."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        method: Optional[str] = None,
        route: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.method = method
        self.route = route

    def __str__(self) -> str:
        target = f" ({self.method} {self.route})" if self.method and self.route else ""
        return f"{self.status_code}: {self.message}{target}"


class ClientError(ApiError):
    """4xx response other than 429, or an unexpected 1xx/3xx; not retried."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        code: Optional[int] = None,
        method: Optional[str] = None,
        route: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, method=method, route=route)
        self.code = code


class ServerError(ApiError):
    """5xx response that persisted after the retry budget was spent."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        attempts: int,
        method: Optional[str] = None,
        route: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, method=method, route=route)
        self.attempts = attempts


class TransportError(RestGateError):
    """Connection, DNS, TLS, or timeout failure after the retry budget was spent."""

    def __init__(self, message: str, *, cause: BaseException, attempts: int) -> None:
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


class DecodeError(RestGateError):
    """Response body could not be decoded where structured data was expected."""

    def __init__(self, message: str, *, body: bytes = b"") -> None:
        super().__init__(message)
        self.body = body


class RequestTimeout(RestGateError):
    """Request waited longer than the caller timeout or ``max_wait``."""

    def __init__(self, message: str, *, waited: Optional[float] = None) -> None:
        super().__init__(message)
        self.waited = waited


class RequestCancelled(RestGateError):
    """Reply was cancelled before the dispatcher resolved it."""


class DispatcherClosed(RestGateError):
    """Dispatcher shut down while the request was still queued."""
