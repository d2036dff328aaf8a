"""Bucket key derivation from a request's method and route.

The service groups routes into rate-limit buckets by route *template*, with
one exception: the top-level resource identifier of a channel, guild or
webhook route (the "major parameter") is part of bucket identity, so
``/channels/1/messages`` and ``/channels/2/messages`` are limited
independently while ``/channels/1/messages/10`` and ``/channels/1/messages/11``
share a bucket.

Every function here is pure: no I/O, no state. The key is a best-effort
local guess; once a response carries ``X-RateLimit-Bucket`` the bucket table
binds keys the server groups together onto one shared window.

Example:
    >>> bucket_key("get", "/channels/1234/messages/5678?limit=50")
    'GET /channels/1234/messages/{id}'
    >>> major_parameter("/guilds/99/members/12")
    'guilds/99'
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

__all__ = [
    "MAJOR_RESOURCES",
    "bucket_key",
    "major_parameter",
    "route_template",
]

#: Top-level resources whose identifier participates in bucket identity,
#: mapped to how many segments after the resource name are retained.
MAJOR_RESOURCES = {
    "channels": 1,
    "guilds": 1,
    "webhooks": 2,
}

_ID_PATTERN = re.compile(r"^\d+$")
_ID_PLACEHOLDER = "{id}"


def _split_route(route: str) -> List[str]:
    path = route.split("?", 1)[0].split("#", 1)[0]
    return [segment for segment in path.strip().split("/") if segment]


def _major_span(segments: List[str]) -> Tuple[int, Optional[str]]:
    """Return ``(retained_until_index, major)`` for the leading major resource."""
    if not segments:
        return 0, None
    retained = MAJOR_RESOURCES.get(segments[0])
    if retained is None or len(segments) < 2:
        return 1, None
    end = min(len(segments), 1 + retained)
    return end, "/".join(segments[:end])


def major_parameter(route: str) -> Optional[str]:
    """Return the major parameter of ``route`` (``"channels/123"``) or ``None``."""
    _, major = _major_span(_split_route(route))
    return major


def route_template(route: str) -> str:
    """Normalise ``route`` into the template the server rate-limits by.

    Major parameters are kept, other numeric identifiers become ``{id}``,
    the emoji segment following ``reactions`` becomes ``{emoji}``, invite
    codes become ``{code}``, and the query string is dropped.
    """
    segments = _split_route(route)
    keep_until, _ = _major_span(segments)

    normalized: List[str] = []
    for index, segment in enumerate(segments):
        previous = segments[index - 1] if index else None
        if index < keep_until:
            normalized.append(segment)
        elif previous == "reactions":
            normalized.append("{emoji}")
        elif previous == "invites":
            normalized.append("{code}")
        elif _ID_PATTERN.match(segment):
            normalized.append(_ID_PLACEHOLDER)
        else:
            normalized.append(segment)
    return "/" + "/".join(normalized)


def bucket_key(method: str, route: str) -> str:
    """Derive the local bucket key for ``method`` + ``route``."""
    return f"{method.strip().upper()} {route_template(route)}"
