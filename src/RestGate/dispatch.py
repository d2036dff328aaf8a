# === NAVMAP v1 ===
# {
#   "module": "RestGate.dispatch",
#   "purpose": "Blocking call-and-get-result facade over the scheduler.",
#   "sections": [
#     {
#       "id": "dispatcher",
#       "name": "Dispatcher",
#       "anchor": "class-dispatcher",
#       "kind": "class"
#     },
#     {
#       "id": "get-dispatcher",
#       "name": "get_dispatcher",
#       "anchor": "function-get-dispatcher",
#       "kind": "function"
#     },
#     {
#       "id": "close-dispatcher",
#       "name": "close_dispatcher",
#       "anchor": "function-close-dispatcher",
#       "kind": "function"
#     },
#     {
#       "id": "reset-dispatcher",
#       "name": "reset_dispatcher",
#       "anchor": "function-reset-dispatcher",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Blocking call-and-get-result facade over the scheduler.

:class:`Dispatcher` wires settings, the HTTPX client, the executor, the
backoff policy and the optional global ceiling into one
:class:`~RestGate.scheduler.Scheduler`, and exposes the calls application
code uses:

- :meth:`Dispatcher.submit` blocks until the request resolves and returns
  the response or raises the terminal error. Rate limits never surface.
- :meth:`Dispatcher.enqueue` returns a :class:`PendingReply` immediately.
- :meth:`Dispatcher.submit_json` decodes the body.

Example:
    >>> with Dispatcher(token="...") as dispatcher:
    ...     me = dispatcher.submit_json("GET", "/users/@me")
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import Any, Callable, Mapping, Optional

import httpx
from pydantic import SecretStr

from RestGate.cancellation import CancellationToken
from RestGate.errors import ConfigurationError, DecodeError
from RestGate.network.client import create_http_client
from RestGate.network.executor import HttpExecutor
from RestGate.network.request import MultipartBody, Request
from RestGate.network.retry import BackoffPolicy
from RestGate.ratelimit.buckets import BucketSnapshot
from RestGate.ratelimit.config import create_global_ceiling
from RestGate.ratelimit.keys import bucket_key
from RestGate.scheduler import PendingReply, Scheduler
from RestGate.settings import RestGateSettings, get_settings

logger = logging.getLogger(__name__)

__all__ = ["Dispatcher", "get_dispatcher", "close_dispatcher", "reset_dispatcher"]


class Dispatcher:
    """Rate-limited entry point for every API call."""

    def __init__(
        self,
        settings: Optional[RestGateSettings] = None,
        *,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        clock: Optional[Callable[[], float]] = None,
        require_token: bool = False,
    ) -> None:
        settings = settings or get_settings()
        if token is not None:
            settings = settings.model_copy(update={"token": SecretStr(token)})
        if require_token and settings.authorization_header() is None:
            raise ConfigurationError("An API token is required (set RESTGATE_TOKEN)")

        try:
            ceiling = create_global_ceiling(settings.ratelimit.global_rate)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid global rate: {exc}") from exc

        self.settings = settings
        self._owns_client = client is None
        self._client = client if client is not None else create_http_client(settings.http)
        self._executor = HttpExecutor.from_settings(settings, self._client)
        self._scheduler = Scheduler(
            self._executor,
            backoff=BackoffPolicy.from_settings(settings.retry),
            global_ceiling=ceiling,
            max_wait=settings.ratelimit.max_wait,
            max_in_flight=settings.ratelimit.max_in_flight,
            clock=clock or time.monotonic,
        )

        logger.debug(
            "Dispatcher created",
            extra={"config_hash": settings.config_hash(), **self._executor.describe()},
        )

    # -- submission ----------------------------------------------------------

    def enqueue(
        self,
        method: str,
        route: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PendingReply:
        """Queue a request and return its :class:`PendingReply` without blocking."""
        request = Request(method, route, body=body, headers=headers or {}, params=params)
        return self._scheduler.enqueue(request, timeout=timeout, cancel_token=cancel_token)

    def submit(
        self,
        method: str,
        route: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """Send a request and block until it resolves.

        Returns the response on success; raises
        :class:`~RestGate.errors.ClientError`, :class:`~RestGate.errors.ServerError`,
        :class:`~RestGate.errors.TransportError`, :class:`~RestGate.errors.RequestTimeout`,
        :class:`~RestGate.errors.RequestCancelled` or
        :class:`~RestGate.errors.DispatcherClosed` otherwise.
        """
        reply = self.enqueue(
            method,
            route,
            body,
            headers,
            params=params,
            timeout=timeout,
            cancel_token=cancel_token,
        )
        return reply.result(timeout)

    def submit_multipart(
        self,
        method: str,
        route: str,
        multipart: MultipartBody,
        headers: Optional[Mapping[str, str]] = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """:meth:`submit` with a ``multipart/form-data`` body."""
        if not isinstance(multipart, MultipartBody):
            raise TypeError(f"Expected MultipartBody, got {type(multipart).__name__}")
        return self.submit(
            method,
            route,
            multipart,
            headers,
            params=params,
            timeout=timeout,
            cancel_token=cancel_token,
        )

    def submit_json(
        self,
        method: str,
        route: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        **kwargs: Any,
    ) -> Any:
        """:meth:`submit` and decode the JSON body; ``None`` for empty responses."""
        response = self.submit(method, route, body, headers, **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return json.loads(response.content)
        except (ValueError, UnicodeDecodeError) as exc:
            raise DecodeError(
                f"Malformed JSON in response to {method.upper()} {route}: {exc}",
                body=response.content,
            ) from exc

    # -- diagnostics ---------------------------------------------------------

    def pending_count(self, key: Optional[str] = None) -> int:
        return self._scheduler.pending_count(key)

    def bucket_snapshot(self, method: str, route: str) -> BucketSnapshot:
        """Current window of the bucket ``method`` + ``route`` maps to."""
        return self._scheduler.bucket_snapshot(bucket_key(method, route))

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    # -- lifecycle -----------------------------------------------------------

    def close(self, wait: bool = True) -> None:
        """Stop the scheduler and release the HTTP client if this dispatcher created it."""
        self._scheduler.close(wait=wait)
        if self._owns_client:
            self._client.close()

    @property
    def closed(self) -> bool:
        return self._scheduler.closed

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# ============================================================================
# Process-wide Dispatcher
# ============================================================================

_dispatcher: Optional[Dispatcher] = None
_dispatcher_lock = threading.Lock()
_dispatcher_pid: Optional[int] = None


def get_dispatcher() -> Dispatcher:
    """Get or create the process-wide dispatcher (rebuilt after a fork)."""
    global _dispatcher, _dispatcher_pid

    with _dispatcher_lock:
        if _dispatcher is not None and _dispatcher_pid == os.getpid() and not _dispatcher.closed:
            return _dispatcher
        if _dispatcher is not None and _dispatcher_pid != os.getpid():
            logger.debug("Process forked; discarding inherited dispatcher")
        _dispatcher = Dispatcher(get_settings())
        _dispatcher_pid = os.getpid()
        return _dispatcher


def close_dispatcher() -> None:
    """Close the process-wide dispatcher; safe to call when none exists."""
    global _dispatcher

    with _dispatcher_lock:
        if _dispatcher is not None:
            try:
                if _dispatcher_pid == os.getpid():
                    _dispatcher.close()
            finally:
                _dispatcher = None


def reset_dispatcher() -> None:
    """Close and forget the process-wide dispatcher (primarily for testing)."""
    global _dispatcher_pid

    close_dispatcher()
    _dispatcher_pid = None
