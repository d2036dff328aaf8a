"""Network subsystem: HTTP client, request model, executor and backoff.

This package provides the I/O half of the dispatcher, built on:
- HTTPX: HTTP/1.1 and HTTP/2 client with connection pooling
- Tenacity: exponential backoff for 5xx and transport failures

Modules:
- client: HTTPX client factory with lazy singleton pattern
- policy: HTTP policy constants (endpoint, timeouts, pooling)
- request: immutable Request / MultipartBody descriptors
- executor: one attempt per call, classified into outcome types
- instrumentation: Request/response hooks for structured telemetry
- retry: Tenacity-based backoff policy

Example:
    >>> from RestGate.network import HttpExecutor, Request, get_http_client
    >>> executor = HttpExecutor(get_http_client(), authorization="Bot <token>")
    >>> outcome = executor.execute(Request("GET", "/users/@me"))
"""

from RestGate.network.client import (
    close_http_client,
    create_http_client,
    get_http_client,
    reset_http_client,
)
from RestGate.network.executor import (
    Classification,
    ClientRejection,
    HttpExecutor,
    RateLimited,
    ServerFailure,
    Success,
    TransportFailure,
    classify_response,
)
from RestGate.network.instrumentation import create_http_event_hooks
from RestGate.network.policy import (
    DEFAULT_BASE_URL,
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    USER_AGENT,
)
from RestGate.network.request import FilePart, MultipartBody, Request, build_http_request
from RestGate.network.retry import BackoffPolicy, create_backoff_policy

__all__ = [
    # Client lifecycle
    "get_http_client",
    "close_http_client",
    "reset_http_client",
    "create_http_client",
    "create_http_event_hooks",
    # Policy
    "DEFAULT_BASE_URL",
    "USER_AGENT",
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    # Requests
    "Request",
    "MultipartBody",
    "FilePart",
    "build_http_request",
    # Execution
    "HttpExecutor",
    "Classification",
    "Success",
    "RateLimited",
    "ClientRejection",
    "ServerFailure",
    "TransportFailure",
    "classify_response",
    # Backoff
    "BackoffPolicy",
    "create_backoff_policy",
]
