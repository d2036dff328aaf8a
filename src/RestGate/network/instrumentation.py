# === NAVMAP v1 ===
# {
#   "module": "RestGate.network.instrumentation",
#   "purpose": "HTTPX event hooks emitting net.request telemetry.",
#   "sections": [
#     {
#       "id": "create-http-event-hooks",
#       "name": "create_http_event_hooks",
#       "anchor": "function-create-http-event-hooks",
#       "kind": "function"
#     },
#     {
#       "id": "redact-url",
#       "name": "_redact_url",
#       "anchor": "function-redact-url",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTP network layer instrumentation and telemetry.

Emits ``net.request`` events for every HTTP call made by the shared HTTPX
client, capturing method, redacted URL, status, timing and the rate-limit
headers the server returned.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse, urlunparse

from RestGate.observability.events import emit_event
from RestGate.ratelimit.headers import HEADER_BUCKET, HEADER_REMAINING

logger = logging.getLogger(__name__)


def create_http_event_hooks() -> dict:
    """Create HTTPX event hooks for telemetry emission.

    Returns:
        Dict with 'request' and 'response' hooks for HTTPX client

    Usage:
        >>> import httpx
        >>> hooks = create_http_event_hooks()
        >>> client = httpx.Client(event_hooks=hooks)
    """
    request_start_time: Dict[int, float] = {}
    lock = threading.Lock()

    def on_request(request: Any) -> None:
        """Called when request starts."""
        with lock:
            request_start_time[id(request)] = time.perf_counter()

    def on_response(response: Any) -> None:
        """Called when response headers arrive."""
        with lock:
            start_time = request_start_time.pop(id(response.request), None)

        if start_time is None:
            return

        elapsed_ms = (time.perf_counter() - start_time) * 1000

        try:
            request = response.request
            emit_event(
                type="net.request",
                level="INFO" if response.status_code < 400 else "WARN",
                payload={
                    "method": request.method,
                    "url_redacted": _redact_url(str(request.url)),
                    "host": request.url.host or "unknown",
                    "status": response.status_code,
                    "http2": response.http_version.startswith("HTTP/2"),
                    "elapsed_ms": round(elapsed_ms, 3),
                    "content_length": _content_length(response),
                    "server_bucket": response.headers.get(HEADER_BUCKET),
                    "remaining": response.headers.get(HEADER_REMAINING),
                },
            )
        except Exception:
            # Never fail telemetry
            logger.debug("net.request telemetry emission failed", exc_info=True)

    return {
        "request": [on_request],
        "response": [on_response],
    }


def _redact_url(url: str) -> str:
    """Redact sensitive parts of a URL.

    Strips query strings and fragments, keeping only scheme + host + path.
    Webhook tokens live in the path, so the segment following a webhook id
    is masked as well.
    """
    try:
        parsed = urlparse(url)
        segments = parsed.path.split("/")
        for index, segment in enumerate(segments[:-2]):
            if segment == "webhooks":
                segments[index + 2] = "***"
        path = "/".join(segments)
        return urlunparse((parsed.scheme, parsed.netloc, path, "", "", ""))
    except Exception:
        return "[URL_REDACTION_FAILED]"


def _content_length(response: Any) -> Optional[int]:
    value = response.headers.get("Content-Length")
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


__all__ = [
    "create_http_event_hooks",
]
