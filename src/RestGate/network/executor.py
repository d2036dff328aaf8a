# === NAVMAP v1 ===
# {
#   "module": "RestGate.network.executor",
#   "purpose": "Single network attempt with response classification.",
#   "sections": [
#     {
#       "id": "success",
#       "name": "Success",
#       "anchor": "class-success",
#       "kind": "class"
#     },
#     {
#       "id": "ratelimited",
#       "name": "RateLimited",
#       "anchor": "class-ratelimited",
#       "kind": "class"
#     },
#     {
#       "id": "clientrejection",
#       "name": "ClientRejection",
#       "anchor": "class-clientrejection",
#       "kind": "class"
#     },
#     {
#       "id": "serverfailure",
#       "name": "ServerFailure",
#       "anchor": "class-serverfailure",
#       "kind": "class"
#     },
#     {
#       "id": "transportfailure",
#       "name": "TransportFailure",
#       "anchor": "class-transportfailure",
#       "kind": "class"
#     },
#     {
#       "id": "classify-response",
#       "name": "classify_response",
#       "anchor": "function-classify-response",
#       "kind": "function"
#     },
#     {
#       "id": "httpexecutor",
#       "name": "HttpExecutor",
#       "anchor": "class-httpexecutor",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Single network attempt with response classification.

:class:`HttpExecutor` performs exactly one HTTP call and never retries.
Whatever happens is folded into one of five outcome types that the
scheduler switches on:

- :class:`Success`: 2xx
- :class:`RateLimited`: 429, bucket or global scope, with a delay in seconds
- :class:`ClientRejection`: any other 4xx, plus 1xx and 3xx since redirects
  are not followed
- :class:`ServerFailure`: 5xx
- :class:`TransportFailure`: the call never produced a response

:func:`classify_response` is pure over an already-read response, so
classifying the same response twice yields equal results.

Credentials live here: the executor adds ``Authorization`` and
``User-Agent`` while building the wire request, so queued
:class:`~RestGate.network.request.Request` objects never carry the token.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

import httpx

from RestGate.network.policy import DEFAULT_BASE_URL, USER_AGENT
from RestGate.network.request import Request, build_http_request
from RestGate.ratelimit.headers import (
    RateLimitInfo,
    RateLimitScope,
    parse_rate_limit_body,
    parse_rate_limit_headers,
    resolve_rejection,
)

if TYPE_CHECKING:
    from RestGate.settings import RestGateSettings

logger = logging.getLogger(__name__)

__all__ = [
    "Success",
    "RateLimited",
    "ClientRejection",
    "ServerFailure",
    "TransportFailure",
    "Classification",
    "classify_response",
    "HttpExecutor",
]


# ============================================================================
# Outcomes
# ============================================================================


@dataclass(frozen=True)
class Success:
    response: httpx.Response
    rate_limit: RateLimitInfo


@dataclass(frozen=True)
class RateLimited:
    scope: RateLimitScope
    retry_after: float
    rate_limit: RateLimitInfo
    response: httpx.Response

    @property
    def is_global(self) -> bool:
        return self.scope is RateLimitScope.GLOBAL


@dataclass(frozen=True)
class ClientRejection:
    status: int
    message: str
    code: Optional[int]
    response: httpx.Response
    rate_limit: RateLimitInfo


@dataclass(frozen=True)
class ServerFailure:
    status: int
    response: httpx.Response
    rate_limit: RateLimitInfo


@dataclass(frozen=True)
class TransportFailure:
    cause: BaseException

    @property
    def rate_limit(self) -> None:
        return None


Classification = Union[Success, RateLimited, ClientRejection, ServerFailure, TransportFailure]


# ============================================================================
# Classification
# ============================================================================


def _error_details(response: httpx.Response) -> tuple[str, Optional[int]]:
    """Extract ``(message, code)`` from an API error body."""
    message = response.reason_phrase or f"HTTP {response.status_code}"
    code: Optional[int] = None
    try:
        payload = json.loads(response.content) if response.content else None
    except (ValueError, UnicodeDecodeError):
        text = response.content.decode("utf-8", errors="replace").strip()
        return (text[:500] or message), None
    if isinstance(payload, dict):
        if payload.get("message"):
            message = str(payload["message"])
        raw_code = payload.get("code")
        if isinstance(raw_code, int) and not isinstance(raw_code, bool):
            code = raw_code
    return message, code


def classify_response(
    response: httpx.Response,
    *,
    retry_after_unit: str = "seconds",
    wall_now: Optional[float] = None,
) -> Classification:
    """Map a fully read response onto its outcome type."""
    info = parse_rate_limit_headers(
        response.headers, retry_after_unit=retry_after_unit, wall_now=wall_now
    )
    status = response.status_code

    if 200 <= status < 300:
        return Success(response=response, rate_limit=info)

    if status == 429:
        body = parse_rate_limit_body(response.content)
        scope, delay = resolve_rejection(
            info, body, retry_after_unit=retry_after_unit, wall_now=wall_now
        )
        return RateLimited(scope=scope, retry_after=delay, rate_limit=info, response=response)

    if status < 500:
        message, code = _error_details(response)
        return ClientRejection(
            status=status, message=message, code=code, response=response, rate_limit=info
        )

    return ServerFailure(status=status, response=response, rate_limit=info)


# ============================================================================
# Executor
# ============================================================================


class HttpExecutor:
    """Perform one HTTP attempt for a :class:`Request` and classify it."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        base_url: str = DEFAULT_BASE_URL,
        authorization: Optional[str] = None,
        user_agent: str = USER_AGENT,
        retry_after_unit: str = "seconds",
    ) -> None:
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.retry_after_unit = retry_after_unit
        self._default_headers: Dict[str, str] = {"User-Agent": user_agent}
        if authorization:
            self._default_headers["Authorization"] = authorization

    @classmethod
    def from_settings(
        cls,
        settings: "RestGateSettings",
        client: Optional[httpx.Client] = None,
    ) -> "HttpExecutor":
        if client is None:
            from RestGate.network.client import get_http_client

            client = get_http_client()
        return cls(
            client,
            base_url=settings.http.base_url,
            authorization=settings.authorization_header(),
            user_agent=settings.http.user_agent,
            retry_after_unit=settings.ratelimit.retry_after_unit,
        )

    @property
    def client(self) -> httpx.Client:
        return self._client

    def build_request(self, request: Request) -> httpx.Request:
        return build_http_request(
            self._client,
            request,
            base_url=self.base_url,
            default_headers=self._default_headers,
        )

    def execute(self, request: Request) -> Classification:
        """Send ``request`` once; network failures become :class:`TransportFailure`."""
        try:
            http_request = self.build_request(request)
            response = self._client.send(http_request)
        except httpx.TransportError as exc:
            logger.debug(
                "Transport failure",
                extra={
                    "request_id": request.request_id,
                    "method": request.method,
                    "route": request.route,
                    "error": type(exc).__name__,
                },
            )
            return TransportFailure(cause=exc)

        outcome = classify_response(response, retry_after_unit=self.retry_after_unit)
        logger.debug(
            "Request attempt classified",
            extra={
                "request_id": request.request_id,
                "method": request.method,
                "route": request.route,
                "status": response.status_code,
                "outcome": type(outcome).__name__,
            },
        )
        return outcome

    def describe(self) -> Dict[str, Any]:
        """Non-secret summary for diagnostics."""
        return {
            "base_url": self.base_url,
            "authorized": "Authorization" in self._default_headers,
            "user_agent": self._default_headers["User-Agent"],
        }
