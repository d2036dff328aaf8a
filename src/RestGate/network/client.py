# === NAVMAP v1 ===
# {
#   "module": "RestGate.network.client",
#   "purpose": "Process-wide pooled HTTPX client for dispatcher workers.",
#   "sections": [
#     {
#       "id": "clientslot",
#       "name": "_ClientSlot",
#       "anchor": "class-clientslot",
#       "kind": "class"
#     },
#     {
#       "id": "get-http-client",
#       "name": "get_http_client",
#       "anchor": "function-get-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "close-http-client",
#       "name": "close_http_client",
#       "anchor": "function-close-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "reset-http-client",
#       "name": "reset_http_client",
#       "anchor": "function-reset-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Process-wide pooled HTTPX client for dispatcher workers.

Workers of different buckets send through one ``httpx.Client`` so they
share its connection pool and keepalives. The client is built lazily from
:func:`RestGate.settings.get_settings` and then stays bound to that
configuration:

- a later settings change logs one warning; the client is kept until
  :func:`reset_http_client` is called
- a forked child notices the PID change and builds its own client instead
  of reusing the parent's sockets
- there is no response cache in the transport; answers from a rate-limited
  API are always fetched

Example:
    >>> from RestGate.network import get_http_client, close_http_client
    >>> client = get_http_client()
    >>> close_http_client()
"""

import logging
import os
import ssl
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import certifi
import httpx

from RestGate.network.instrumentation import create_http_event_hooks
from RestGate.network.policy import CONNECT_RETRIES, FOLLOW_REDIRECTS

if TYPE_CHECKING:
    from RestGate.settings import HttpSettings

logger = logging.getLogger(__name__)


@dataclass
class _ClientSlot:
    """The shared client plus the configuration and process it belongs to."""

    client: Optional[httpx.Client] = None
    config_hash: Optional[str] = None
    pid: Optional[int] = None
    drift_reported: bool = False

    def usable(self) -> bool:
        return self.client is not None and self.pid == os.getpid()

    def clear(self) -> None:
        self.client = None
        self.config_hash = None
        self.pid = None
        self.drift_reported = False


_slot = _ClientSlot()
_slot_lock = threading.Lock()


def get_http_client() -> httpx.Client:
    """Return the shared client, building it on first use or after a fork."""
    # settings imports this package at load time
    from RestGate.settings import get_settings

    if _slot.usable():
        _report_config_drift(get_settings().config_hash())
        return _slot.client  # type: ignore[return-value]

    with _slot_lock:
        if _slot.usable():
            return _slot.client  # type: ignore[return-value]

        if _slot.client is not None:
            # inherited from the parent process; its sockets are not ours
            logger.debug("Discarding HTTP client inherited across fork", extra={"parent_pid": _slot.pid})
            _close_quietly(_slot.client)

        settings = get_settings()
        _slot.client = create_http_client(settings.http)
        _slot.config_hash = settings.config_hash()
        _slot.pid = os.getpid()
        _slot.drift_reported = False
        logger.debug(
            "Shared HTTP client ready",
            extra={"config_hash": _slot.config_hash, "pid": _slot.pid},
        )
        return _slot.client


def close_http_client() -> None:
    """Close the shared client if one exists; repeated calls are harmless."""
    with _slot_lock:
        client, _slot.client = _slot.client, None
    if client is None:
        return
    try:
        client.close()
    except Exception as exc:
        logger.error("Closing shared HTTP client failed: %s", exc)
    else:
        logger.debug("Shared HTTP client closed")


def reset_http_client() -> None:
    """Close the shared client and forget its configuration binding."""
    close_http_client()
    with _slot_lock:
        _slot.clear()


def _report_config_drift(current_hash: str) -> None:
    if current_hash == _slot.config_hash or _slot.drift_reported:
        return
    _slot.drift_reported = True
    logger.warning(
        "Settings config_hash changed after the shared HTTP client was built; "
        "keeping the existing client until reset_http_client() is called",
        extra={"bound_hash": _slot.config_hash, "current_hash": current_hash},
    )


def _close_quietly(client: httpx.Client) -> None:
    try:
        client.close()
    except Exception:
        logger.debug("Closing inherited HTTP client failed", exc_info=True)


def _create_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """TLS context backed by the certifi bundle, or an unverified one for local testing."""
    if verify:
        ctx = ssl.create_default_context(cafile=certifi.where())
        ctx.verify_mode = ssl.CERT_REQUIRED
        ctx.check_hostname = True
        return ctx

    logger.warning("TLS verification DISABLED; use only against local test servers")
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def create_http_client(
    http: Optional["HttpSettings"] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Build a pooled client with timeouts and ``net.request`` hooks.

    Args:
        http: HTTP settings; the process settings are used when omitted.
        transport: Replacement transport, e.g. ``httpx.MockTransport`` in tests.
    """
    if http is None:
        from RestGate.settings import get_settings

        http = get_settings().http

    ssl_ctx = _create_ssl_context(http.verify_tls)
    if transport is None:
        # only connection setup is retried here; the scheduler owns everything else
        transport = httpx.HTTPTransport(
            verify=ssl_ctx,
            http2=http.http2,
            retries=CONNECT_RETRIES,
        )

    timeout = httpx.Timeout(
        connect=http.timeout_connect,
        read=http.timeout_read,
        write=http.timeout_write,
        pool=http.timeout_pool,
    )
    limits = httpx.Limits(
        max_connections=http.pool_max_connections,
        max_keepalive_connections=http.pool_keepalive_max,
        keepalive_expiry=http.keepalive_expiry,
    )
    client = httpx.Client(
        transport=transport,
        timeout=timeout,
        limits=limits,
        http2=http.http2,
        verify=ssl_ctx,
        follow_redirects=FOLLOW_REDIRECTS,
        event_hooks=create_http_event_hooks(),
    )
    logger.debug(
        "HTTP client built",
        extra={
            "http2": http.http2,
            "max_connections": http.pool_max_connections,
            "base_url": http.base_url,
        },
    )
    return client


__all__ = [
    "create_http_client",
    "get_http_client",
    "close_http_client",
    "reset_http_client",
]
