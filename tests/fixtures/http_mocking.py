# === NAVMAP v1 ===
# {
#   "module": "tests.fixtures.http_mocking",
#   "purpose": "HTTP mocking fixtures for hermetic dispatcher testing",
#   "sections": [
#     {"id": "mock-response-builder", "name": "MockResponseBuilder", "anchor": "class-mock-response-builder", "kind": "class"},
#     {"id": "scripted-api", "name": "ScriptedApi", "anchor": "class-scripted-api", "kind": "class"},
#     {"id": "http-mock-fixture", "name": "http_mock", "anchor": "fixture-http-mock", "kind": "fixture"},
#     {"id": "scripted-api-fixture", "name": "scripted_api", "anchor": "fixture-scripted-api", "kind": "fixture"}
#   ]
# }
# === /NAVMAP ===

"""
HTTP mocking fixtures for hermetic dispatcher testing.

Provides HTTPX MockTransport helpers and a fluent response builder so the
scheduler can be exercised end to end without network access. The scripted
API records every request it receives together with a monotonic timestamp,
which lets tests assert ordering and pacing.
"""

from __future__ import annotations

import json
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Generator, List, Optional, Tuple, Union

import httpx
import pytest

BASE_URL = "https://api.test/v10"


class MockResponseBuilder:
    """Builder for constructing mock HTTP responses with fluent API."""

    def __init__(self, status_code: int = 200, content: bytes = b""):
        """Initialize response builder with defaults."""
        self.status_code = status_code
        self.content = content
        self.headers: dict[str, str] = {}

    def with_status(self, code: int) -> MockResponseBuilder:
        """Set response status code."""
        self.status_code = code
        return self

    def with_content(self, content: bytes | str) -> MockResponseBuilder:
        """Set response content."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.content = content
        return self

    def with_json(self, data: Any) -> MockResponseBuilder:
        """Set response content as JSON."""
        self.content = json.dumps(data).encode("utf-8")
        self.headers["content-type"] = "application/json"
        return self

    def with_header(self, name: str, value: str) -> MockResponseBuilder:
        """Add response header."""
        self.headers[name] = value
        return self

    def with_headers(self, headers: dict[str, str]) -> MockResponseBuilder:
        """Set multiple response headers."""
        self.headers.update(headers)
        return self

    def with_rate_limit(
        self,
        *,
        limit: int,
        remaining: int,
        reset_after: float,
        bucket: Optional[str] = None,
    ) -> MockResponseBuilder:
        """Add the ``X-RateLimit-*`` window headers."""
        self.headers["X-RateLimit-Limit"] = str(limit)
        self.headers["X-RateLimit-Remaining"] = str(remaining)
        self.headers["X-RateLimit-Reset-After"] = f"{reset_after:.3f}"
        self.headers["X-RateLimit-Reset"] = f"{time.time() + reset_after:.3f}"
        if bucket is not None:
            self.headers["X-RateLimit-Bucket"] = bucket
        return self

    def too_many_requests(self, retry_after: float, *, is_global: bool = False) -> MockResponseBuilder:
        """Turn the response into a 429 with ``Retry-After`` and a JSON body."""
        self.status_code = 429
        self.headers["Retry-After"] = f"{retry_after}"
        if is_global:
            self.headers["X-RateLimit-Global"] = "true"
            self.headers["X-RateLimit-Scope"] = "global"
        return self.with_json(
            {"message": "You are being rate limited.", "retry_after": retry_after, "global": is_global}
        )

    def build(self) -> httpx.Response:
        """Build the final response object."""
        return httpx.Response(
            status_code=self.status_code,
            content=self.content,
            headers=self.headers,
        )


Responder = Union[httpx.Response, MockResponseBuilder, Exception, Callable[[httpx.Request], Any]]


@dataclass(frozen=True)
class RecordedRequest:
    """One request seen by :class:`ScriptedApi`."""

    method: str
    path: str
    at: float
    request: httpx.Request


class ScriptedApi:
    """MockTransport handler serving scripted responses per ``(method, path)``.

    Responses queued with :meth:`script` are served in order; once a route's
    script is exhausted :attr:`default` answers (200 with ``{}``). Queuing an
    exception raises it from the transport, simulating a network failure.
    """

    def __init__(self, base_url: str = BASE_URL) -> None:
        self.base_url = base_url
        self.prefix = httpx.URL(base_url).path.rstrip("/")
        self._scripts: Dict[Tuple[str, str], Deque[Responder]] = defaultdict(deque)
        self._lock = threading.Lock()
        self.calls: List[RecordedRequest] = []
        self.default: Callable[[], httpx.Response] = lambda: MockResponseBuilder(200).with_json({}).build()
        self.delay = 0.0

    def script(self, method: str, path: str, *responses: Responder) -> ScriptedApi:
        with self._lock:
            self._scripts[(method.upper(), path)].extend(responses)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith(self.prefix):
            path = path[len(self.prefix):]
        with self._lock:
            self.calls.append(RecordedRequest(request.method, path, time.monotonic(), request))
            queue = self._scripts.get((request.method, path))
            responder: Optional[Responder] = queue.popleft() if queue else None
        if self.delay:
            time.sleep(self.delay)
        if responder is None:
            return self.default()
        if isinstance(responder, Exception):
            raise responder
        if isinstance(responder, MockResponseBuilder):
            return responder.build()
        if isinstance(responder, httpx.Response):
            return responder
        result = responder(request)
        return result.build() if isinstance(result, MockResponseBuilder) else result

    def calls_for(self, method: str, path: str) -> List[RecordedRequest]:
        with self._lock:
            return [c for c in self.calls if c.method == method.upper() and c.path == path]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def http_mock() -> Generator[Callable[..., MockResponseBuilder], None, None]:
    """
    Provide a mock HTTP response builder factory.

    Example:
        def test_http_client(http_mock):
            response = http_mock(200).with_json({"id": 1}).build()
            assert response.headers["content-type"] == "application/json"
    """

    def _mock_response(status_code: int = 200, content: bytes | str = b"") -> MockResponseBuilder:
        if isinstance(content, str):
            content = content.encode("utf-8")
        return MockResponseBuilder(status_code=status_code, content=content)

    yield _mock_response


@pytest.fixture
def scripted_api() -> Generator[ScriptedApi, None, None]:
    """Provide a fresh :class:`ScriptedApi` rooted at :data:`BASE_URL`."""
    yield ScriptedApi()
