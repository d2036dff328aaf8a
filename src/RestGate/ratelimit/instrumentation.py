# === NAVMAP v1 ===
# {
#   "module": "RestGate.ratelimit.instrumentation",
#   "purpose": "Scheduler telemetry helpers (dispatch, cooldown, global lock, retry, timeout).",
#   "sections": [
#     {
#       "id": "emit-safe",
#       "name": "_emit_safe",
#       "anchor": "function-emit-safe",
#       "kind": "function"
#     },
#     {
#       "id": "emit-dispatch-event",
#       "name": "emit_dispatch_event",
#       "anchor": "function-emit-dispatch-event",
#       "kind": "function"
#     },
#     {
#       "id": "emit-cooldown-event",
#       "name": "emit_cooldown_event",
#       "anchor": "function-emit-cooldown-event",
#       "kind": "function"
#     },
#     {
#       "id": "emit-global-lock-event",
#       "name": "emit_global_lock_event",
#       "anchor": "function-emit-global-lock-event",
#       "kind": "function"
#     },
#     {
#       "id": "emit-retry-event",
#       "name": "emit_retry_event",
#       "anchor": "function-emit-retry-event",
#       "kind": "function"
#     },
#     {
#       "id": "emit-timeout-event",
#       "name": "emit_timeout_event",
#       "anchor": "function-emit-timeout-event",
#       "kind": "function"
#     },
#     {
#       "id": "emit-ceiling-blocked-event",
#       "name": "emit_ceiling_blocked_event",
#       "anchor": "function-emit-ceiling-blocked-event",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Scheduler telemetry helpers.

Every helper builds a small payload and hands it to
:func:`RestGate.observability.events.emit_event`. Telemetry failures are
logged at debug level and never reach the scheduler loop.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from RestGate.observability.events import emit_event

logger = logging.getLogger(__name__)

__all__ = [
    "emit_dispatch_event",
    "emit_cooldown_event",
    "emit_global_lock_event",
    "emit_retry_event",
    "emit_timeout_event",
    "emit_ceiling_blocked_event",
]


def _emit_safe(
    type: str,
    *,
    level: str,
    payload: Dict[str, Any],
    request_id: Optional[str] = None,
    bucket_key: Optional[str] = None,
) -> None:
    """Emit the event, swallowing telemetry errors."""
    try:
        emit_event(
            type=type,
            level=level,
            payload=payload,
            request_id=request_id,
            bucket_key=bucket_key,
        )
    except Exception:  # pragma: no cover - telemetry must not raise
        logger.debug("rate limit telemetry emission failed", exc_info=True)


def emit_dispatch_event(
    *,
    bucket_key: str,
    request_id: str,
    attempt: int,
    remaining: int,
    waited_ms: float,
) -> None:
    """Emit event when a queued request is handed to a worker."""
    _emit_safe(
        "ratelimit.dispatch",
        level="INFO",
        payload={
            "attempt": int(attempt),
            "remaining": int(remaining),
            "waited_ms": round(float(waited_ms), 3),
        },
        request_id=request_id,
        bucket_key=bucket_key,
    )


def emit_cooldown_event(
    *,
    bucket_key: str,
    request_id: Optional[str],
    cooldown_sec: float,
    server_bucket: Optional[str] = None,
) -> None:
    """Emit event when a bucket-scoped 429 pauses one bucket."""
    payload: Dict[str, Any] = {"cooldown_sec": float(max(0.0, cooldown_sec))}
    if server_bucket:
        payload["server_bucket"] = server_bucket
    _emit_safe(
        "ratelimit.cooldown",
        level="WARN",
        payload=payload,
        request_id=request_id,
        bucket_key=bucket_key,
    )


def emit_global_lock_event(
    *,
    bucket_key: str,
    request_id: Optional[str],
    duration_sec: float,
    locked_until: float,
) -> None:
    """Emit event when a global 429 freezes every bucket."""
    _emit_safe(
        "ratelimit.global_lock",
        level="WARN",
        payload={
            "duration_sec": float(max(0.0, duration_sec)),
            "locked_until": float(locked_until),
        },
        request_id=request_id,
        bucket_key=bucket_key,
    )


def emit_retry_event(
    *,
    bucket_key: str,
    request_id: str,
    attempt: int,
    delay_sec: float,
    reason: str,
    status_code: Optional[int] = None,
) -> None:
    """Emit event when a 5xx or transport failure is scheduled for another attempt."""
    payload: Dict[str, Any] = {
        "attempt": int(attempt),
        "delay_sec": float(max(0.0, delay_sec)),
        "reason": reason,
    }
    if status_code is not None:
        payload["status_code"] = int(status_code)
    _emit_safe(
        "ratelimit.retry",
        level="WARN",
        payload=payload,
        request_id=request_id,
        bucket_key=bucket_key,
    )


def emit_timeout_event(
    *,
    bucket_key: str,
    request_id: str,
    waited_sec: float,
) -> None:
    """Emit event when a queued request exceeds its deadline."""
    _emit_safe(
        "ratelimit.timeout",
        level="ERROR",
        payload={"waited_sec": float(max(0.0, waited_sec))},
        request_id=request_id,
        bucket_key=bucket_key,
    )


def emit_ceiling_blocked_event(*, bucket_key: str, retry_after_sec: float) -> None:
    """Emit event when the client-side global ceiling defers a dispatch."""
    _emit_safe(
        "ratelimit.block",
        level="INFO",
        payload={
            "reason": "global_ceiling",
            "retry_after_sec": float(retry_after_sec),
            "retry_after_ms": int(retry_after_sec * 1000),
        },
        bucket_key=bucket_key,
    )
