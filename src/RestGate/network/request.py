"""Immutable request descriptors and their translation to :class:`httpx.Request`.

A :class:`Request` is what callers hand to the dispatcher: method, route,
body, extra headers and query parameters. It carries no credentials; the
executor attaches ``Authorization`` and ``User-Agent`` when it builds the
wire request.

Body handling:
- ``None``: no body.
- ``bytes`` / ``str``: sent verbatim as ``application/json`` unless the
  caller supplies a ``Content-Type``.
- mapping / list: JSON-encoded.
- :class:`MultipartBody`: ``multipart/form-data`` with string fields, an
  optional ``payload_json`` part and an optional :class:`FilePart`.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import httpx

from RestGate.ratelimit.keys import bucket_key

__all__ = ["FilePart", "MultipartBody", "Request", "build_http_request"]

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class FilePart:
    """Binary part of a multipart body; ``content`` is bytes or a path to read."""

    content: Union[bytes, Path]
    filename: Optional[str] = None
    name: str = "file"
    content_type: Optional[str] = None

    def read(self) -> bytes:
        if isinstance(self.content, (bytes, bytearray)):
            return bytes(self.content)
        return Path(self.content).read_bytes()

    def resolved_filename(self) -> str:
        if self.filename:
            return self.filename
        if isinstance(self.content, Path):
            return self.content.name
        return self.name


@dataclass(frozen=True)
class MultipartBody:
    """Structured ``multipart/form-data`` body."""

    fields: Mapping[str, Any] = field(default_factory=dict)
    file: Optional[FilePart] = None
    payload_json: Optional[Any] = None

    @classmethod
    def for_message(
        cls,
        content: Optional[str] = None,
        *,
        file: Optional[FilePart] = None,
        tts: bool = False,
    ) -> "MultipartBody":
        """Message upload: text content, TTS flag and an attachment."""
        fields: Dict[str, Any] = {"tts": "true" if tts else "false"}
        if content is not None:
            fields["content"] = content
        return cls(fields=fields, file=file)

    def to_files(self) -> List[Tuple[str, Tuple[Optional[str], bytes, Optional[str]]]]:
        """Render every part as an httpx ``files`` entry (field parts carry no filename)."""
        parts: List[Tuple[str, Tuple[Optional[str], bytes, Optional[str]]]] = []
        for name, value in self.fields.items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            parts.append((name, (None, str(value).encode("utf-8"), None)))
        if self.payload_json is not None:
            encoded = json.dumps(self.payload_json, separators=(",", ":")).encode("utf-8")
            parts.append(("payload_json", (None, encoded, JSON_CONTENT_TYPE)))
        if self.file is not None:
            parts.append(
                (
                    self.file.name,
                    (
                        self.file.resolved_filename(),
                        self.file.read(),
                        self.file.content_type or "application/octet-stream",
                    ),
                )
            )
        return parts


def _new_request_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass(frozen=True)
class Request:
    """One API call as submitted by a caller."""

    method: str
    route: str
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Optional[Mapping[str, Any]] = None
    request_id: str = field(default_factory=_new_request_id, compare=False)

    def __post_init__(self) -> None:
        method = self.method.strip().upper()
        if not method:
            raise ValueError("Request method must not be empty")
        route = self.route.strip()
        if not route.startswith("/"):
            route = "/" + route
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "route", route)
        object.__setattr__(self, "headers", dict(self.headers or {}))
        if self.params is not None:
            object.__setattr__(self, "params", dict(self.params))

    @property
    def bucket_key(self) -> str:
        return bucket_key(self.method, self.route)

    @property
    def is_multipart(self) -> bool:
        return isinstance(self.body, MultipartBody)


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def build_http_request(
    client: httpx.Client,
    request: Request,
    *,
    base_url: str,
    default_headers: Optional[Mapping[str, str]] = None,
) -> httpx.Request:
    """Translate ``request`` into an :class:`httpx.Request` on ``client``.

    ``default_headers`` (credentials, user agent) are applied first; the
    request's own headers may add to them but never remove them.
    """
    headers: Dict[str, str] = dict(default_headers or {})
    for name, value in request.headers.items():
        if name.lower() == "authorization" and _has_header(headers, "authorization"):
            continue
        headers[name] = value

    url = base_url.rstrip("/") + request.route
    kwargs: Dict[str, Any] = {"headers": headers}
    if request.params:
        kwargs["params"] = {k: v for k, v in request.params.items() if v is not None}

    body = request.body
    if body is None:
        pass
    elif isinstance(body, MultipartBody):
        kwargs["files"] = body.to_files()
    elif isinstance(body, (bytes, bytearray, str)):
        kwargs["content"] = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        if not _has_header(headers, "content-type"):
            headers["Content-Type"] = JSON_CONTENT_TYPE
    else:
        kwargs["json"] = body

    return client.build_request(request.method, url, **kwargs)
