# === NAVMAP v1 ===
# {
#   "module": "RestGate.scheduler",
#   "purpose": "Per-bucket FIFO queues and the single-owner dispatch loop.",
#   "sections": [
#     {
#       "id": "pendingreply",
#       "name": "PendingReply",
#       "anchor": "class-pendingreply",
#       "kind": "class"
#     },
#     {
#       "id": "queuedrequest",
#       "name": "_QueuedRequest",
#       "anchor": "class-queuedrequest",
#       "kind": "class"
#     },
#     {
#       "id": "scheduler",
#       "name": "Scheduler",
#       "anchor": "class-scheduler",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Per-bucket FIFO queues and the single-owner dispatch loop.

Threading model:
- Callers run :meth:`Scheduler.enqueue` from any thread; it appends to the
  bucket's queue and returns a :class:`PendingReply` without blocking.
- One scheduler thread owns all mutable state (bucket table, global lock,
  queues). Every read and write happens under one ``threading.Condition``.
- Network I/O runs in a bounded ``ThreadPoolExecutor``. Workers only call
  the executor; their outcome is applied back under the condition.

A bucket has at most one request in flight, so requests sharing a bucket key
reach the network strictly in submission order. Rate-limit rejections and
transient failures put the request back at the *front* of its queue; callers
only ever see a response or a terminal error.

Example:
    >>> scheduler = Scheduler(HttpExecutor(get_http_client()))
    >>> reply = scheduler.enqueue(Request("GET", "/channels/1/messages"))
    >>> response = reply.result(timeout=30)
    >>> scheduler.close()
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

import httpx

from RestGate.cancellation import CancellationToken
from RestGate.errors import (
    ClientError,
    DispatcherClosed,
    RequestCancelled,
    RequestTimeout,
    RestGateError,
    ServerError,
    TransportError,
)
from RestGate.network.executor import (
    Classification,
    ClientRejection,
    HttpExecutor,
    RateLimited,
    ServerFailure,
    Success,
    TransportFailure,
)
from RestGate.network.request import Request
from RestGate.network.retry import BackoffPolicy
from RestGate.ratelimit.buckets import BucketSnapshot, BucketTable
from RestGate.ratelimit.config import GlobalCeiling
from RestGate.ratelimit.global_lock import GlobalLock
from RestGate.ratelimit.headers import RateLimitScope
from RestGate.ratelimit.instrumentation import (
    emit_ceiling_blocked_event,
    emit_cooldown_event,
    emit_dispatch_event,
    emit_global_lock_event,
    emit_retry_event,
    emit_timeout_event,
)

logger = logging.getLogger(__name__)

__all__ = ["PendingReply", "Scheduler"]

Clock = Callable[[], float]


# ============================================================================
# Pending Reply
# ============================================================================


class PendingReply:
    """One-shot handle for the eventual response of one request.

    The reply is fulfilled exactly once, with an :class:`httpx.Response` or a
    :class:`~RestGate.errors.RestGateError`. Cancelling, or timing out in
    :meth:`result`, resolves it with an error and tells the scheduler to drop
    the request if it is still queued.
    """

    def __init__(self, request: Request) -> None:
        self.request = request
        self._future: "Future[httpx.Response]" = Future()
        self._lock = threading.Lock()
        self._cancelled = False
        self._settled = False
        self._on_cancel: Optional[Callable[["PendingReply"], None]] = None

    @property
    def request_id(self) -> str:
        return self.request.request_id

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Resolve with :class:`RequestCancelled`; False if already resolved."""
        error = RequestCancelled(
            f"Request {self.request.method} {self.request.route} was cancelled"
        )
        if not self._resolve(error=error, cancelled=True):
            return False
        self._detach()
        return True

    def result(self, timeout: Optional[float] = None) -> httpx.Response:
        """Block until resolved; return the response or raise the terminal error.

        When ``timeout`` elapses first, the reply is resolved with
        :class:`RequestTimeout` (and detached from the scheduler) before raising.
        """
        try:
            return self._future.result(timeout)
        except FutureTimeoutError:
            error = RequestTimeout(
                f"No reply for {self.request.method} {self.request.route} within {timeout}s",
                waited=timeout,
            )
            if self._resolve(error=error):
                self._detach()
            # a concurrent resolver may still be setting the value
            return self._future.result()

    def outcome(self, timeout: Optional[float] = None) -> Union[httpx.Response, RestGateError]:
        """Like :meth:`result` but return the error instead of raising it."""
        try:
            return self.result(timeout)
        except RestGateError as exc:
            return exc

    def add_done_callback(self, callback: Callable[["PendingReply"], None]) -> None:
        self._future.add_done_callback(lambda _future: callback(self))

    # -- scheduler side ------------------------------------------------------

    def _bind(self, on_cancel: Callable[["PendingReply"], None]) -> None:
        self._on_cancel = on_cancel

    def _detach(self) -> None:
        if self._on_cancel is not None:
            self._on_cancel(self)

    def _resolve(
        self,
        *,
        response: Optional[httpx.Response] = None,
        error: Optional[BaseException] = None,
        cancelled: bool = False,
    ) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
            if cancelled:
                self._cancelled = True
        # done-callbacks run here and may call back into this reply
        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(response)  # type: ignore[arg-type]
        return True

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"<PendingReply {self.request.method} {self.request.route} {state}>"


# ============================================================================
# Queue Entries
# ============================================================================


@dataclass(eq=False)
class _QueuedRequest:
    request: Request
    reply: PendingReply
    key: str
    enqueued_at: float
    deadline: Optional[float] = None
    not_before: float = 0.0
    failures: int = 0
    dispatches: int = 0


# ============================================================================
# Scheduler
# ============================================================================


class Scheduler:
    """Single-owner scheduler enforcing bucket and global rate limits."""

    def __init__(
        self,
        executor: HttpExecutor,
        *,
        backoff: Optional[BackoffPolicy] = None,
        global_ceiling: Optional[GlobalCeiling] = None,
        max_wait: Optional[float] = None,
        max_in_flight: int = 8,
        clock: Clock = time.monotonic,
        wall_clock: Clock = time.time,
        name: str = "restgate-scheduler",
    ) -> None:
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be positive, got: {max_in_flight}")
        self._executor = executor
        self._backoff = backoff or BackoffPolicy()
        self._ceiling = global_ceiling
        self._max_wait = max_wait
        self._max_in_flight = max_in_flight
        self._clock = clock
        self._wall_clock = wall_clock

        self._cond = threading.Condition()
        self._table = BucketTable()
        self._global_lock = GlobalLock()
        # Keys with queued entries, in first-queued order.
        self._active: Dict[str, None] = {}
        self._in_flight = 0
        self._closed = False

        self._workers = ThreadPoolExecutor(
            max_workers=max_in_flight, thread_name_prefix=f"{name}-worker"
        )
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    # -- public API ----------------------------------------------------------

    def enqueue(
        self,
        request: Request,
        *,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PendingReply:
        """Queue ``request`` behind earlier requests of its bucket."""
        reply = PendingReply(request)
        reply._bind(self._discard)

        with self._cond:
            if self._closed:
                raise DispatcherClosed("Dispatcher is closed; request not queued")
            now = self._clock()
            limits = [value for value in (timeout, self._max_wait) if value is not None]
            entry = _QueuedRequest(
                request=request,
                reply=reply,
                key=request.bucket_key,
                enqueued_at=now,
                deadline=now + min(limits) if limits else None,
            )
            self._table.get_or_create(entry.key).pending.append(entry)
            self._active[entry.key] = None
            self._cond.notify_all()

        logger.debug(
            "Request queued",
            extra={
                "request_id": request.request_id,
                "bucket_key": entry.key,
                "method": request.method,
                "route": request.route,
            },
        )

        if cancel_token is not None:
            cancel_token.add_callback(reply.cancel)
            reply.add_done_callback(lambda _reply: cancel_token.remove_callback(reply.cancel))
        return reply

    def close(self, wait: bool = True) -> None:
        """Fail every queued request with :class:`DispatcherClosed` and stop the loop."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            drained: List[_QueuedRequest] = []
            for key in list(self._active):
                bucket = self._table.get_or_create(key)
                drained.extend(bucket.pending)
                bucket.pending.clear()
            self._active.clear()
            self._cond.notify_all()

        for entry in drained:
            entry.reply._resolve(error=DispatcherClosed("Dispatcher closed before dispatch"))
        if drained:
            logger.info("Scheduler closed", extra={"drained": len(drained)})

        if wait and threading.current_thread() is not self._thread:
            self._thread.join()
        self._workers.shutdown(wait=wait)

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_count(self, key: Optional[str] = None) -> int:
        """Queued (not in-flight) requests, for one bucket key or overall."""
        with self._cond:
            if key is not None:
                bucket = self._table.get(key)
                return len(bucket.pending) if bucket is not None else 0
            return sum(len(self._table.get_or_create(k).pending) for k in self._active)

    def in_flight_count(self) -> int:
        with self._cond:
            return self._in_flight

    def bucket_snapshot(self, key: str) -> BucketSnapshot:
        with self._cond:
            return self._table.snapshot(key)

    def global_lock_remaining(self) -> float:
        with self._cond:
            return self._global_lock.remaining(self._clock())

    # -- dispatch loop -------------------------------------------------------

    def _run(self) -> None:
        with self._cond:
            while not self._closed:
                try:
                    wake_at = self._dispatch_pass(self._clock())
                except Exception:
                    logger.exception("Scheduler pass failed")
                    wake_at = self._clock() + 0.05
                if self._closed:
                    break
                timeout = None if wake_at is None else max(0.0, wake_at - self._clock())
                self._cond.wait(timeout)
        logger.debug("Scheduler loop stopped")

    def _dispatch_pass(self, now: float) -> Optional[float]:
        """Dispatch every eligible bucket head; return the next wake-up time."""
        wake_at = self._expire(now)

        if self._global_lock.is_active(now):
            return _earliest(wake_at, self._global_lock.locked_until)

        for key in list(self._active):
            bucket = self._table.get_or_create(key)
            if not bucket.pending:
                del self._active[key]
                continue
            if bucket.busy:
                continue
            if self._in_flight >= self._max_in_flight:
                break

            head: _QueuedRequest = bucket.pending[0]
            if head.not_before > now:
                wake_at = _earliest(wake_at, head.not_before)
                continue
            if not self._table.has_capacity(key, now):
                wake_at = _earliest(wake_at, bucket.reset_at)
                continue
            if self._ceiling is not None and not self._ceiling.try_acquire():
                retry_in = self._ceiling.retry_interval
                emit_ceiling_blocked_event(bucket_key=key, retry_after_sec=retry_in)
                wake_at = _earliest(wake_at, now + retry_in)
                break

            bucket.pending.popleft()
            if not bucket.pending:
                del self._active[key]
            self._table.consume(key)
            bucket.busy = True
            self._in_flight += 1
            head.dispatches += 1

            emit_dispatch_event(
                bucket_key=key,
                request_id=head.request.request_id,
                attempt=head.dispatches,
                remaining=bucket.remaining,
                waited_ms=(now - head.enqueued_at) * 1000,
            )
            self._workers.submit(self._execute, head)

        return wake_at

    def _expire(self, now: float) -> Optional[float]:
        """Drop resolved entries and time out overdue ones; return the next deadline."""
        wake_at: Optional[float] = None
        for key in list(self._active):
            bucket = self._table.get_or_create(key)
            if not bucket.pending:
                continue
            kept = []
            for entry in bucket.pending:
                if entry.reply.done():
                    continue
                if entry.deadline is not None and now >= entry.deadline:
                    waited = now - entry.enqueued_at
                    entry.reply._resolve(
                        error=RequestTimeout(
                            f"{entry.request.method} {entry.request.route} waited "
                            f"{waited:.3f}s without being sent",
                            waited=waited,
                        )
                    )
                    emit_timeout_event(
                        bucket_key=key, request_id=entry.request.request_id, waited_sec=waited
                    )
                    logger.warning(
                        "Request timed out in queue",
                        extra={"bucket_key": key, "request_id": entry.request.request_id},
                    )
                    continue
                if entry.deadline is not None:
                    wake_at = _earliest(wake_at, entry.deadline)
                kept.append(entry)
            if len(kept) != len(bucket.pending):
                bucket.pending.clear()
                bucket.pending.extend(kept)
        return wake_at

    def _discard(self, reply: PendingReply) -> None:
        """Remove a cancelled reply's request if it is still queued."""
        with self._cond:
            bucket = self._table.get(reply.request.bucket_key)
            if bucket is not None:
                for entry in bucket.pending:
                    if entry.reply is reply:
                        bucket.pending.remove(entry)
                        break
            self._cond.notify_all()

    # -- workers -------------------------------------------------------------

    def _execute(self, entry: _QueuedRequest) -> None:
        outcome: Union[Classification, BaseException]
        try:
            outcome = self._executor.execute(entry.request)
        except Exception as exc:
            outcome = exc
        with self._cond:
            try:
                self._complete(entry, outcome)
            finally:
                self._cond.notify_all()

    def _complete(
        self, entry: _QueuedRequest, outcome: Union[Classification, BaseException]
    ) -> None:
        now = self._clock()
        key = entry.key
        bucket = self._table.get_or_create(key)
        bucket.busy = False
        self._in_flight -= 1
        request = entry.request

        if isinstance(outcome, BaseException):
            logger.error(
                "Unexpected error while executing request",
                extra={"bucket_key": key, "request_id": request.request_id},
                exc_info=outcome,
            )
            error = RestGateError(f"{request.method} {request.route} failed: {outcome}")
            error.__cause__ = outcome
            entry.reply._resolve(error=error)
            return

        if isinstance(outcome, RateLimited) and outcome.scope is RateLimitScope.GLOBAL:
            self._table.refund(key)
            locked_until = self._global_lock.activate(now, outcome.retry_after)
            emit_global_lock_event(
                bucket_key=key,
                request_id=request.request_id,
                duration_sec=outcome.retry_after,
                locked_until=locked_until,
            )
            logger.warning(
                "Global rate limit hit; all buckets paused",
                extra={"bucket_key": key, "retry_after": outcome.retry_after},
            )
            self._requeue(entry)
            return

        if outcome.rate_limit is not None:
            self._table.apply_rate_limit_info(key, outcome.rate_limit, now, self._wall_clock())

        if isinstance(outcome, Success):
            entry.reply._resolve(response=outcome.response)
        elif isinstance(outcome, RateLimited):
            self._table.penalize(key, now + outcome.retry_after)
            emit_cooldown_event(
                bucket_key=key,
                request_id=request.request_id,
                cooldown_sec=outcome.retry_after,
                server_bucket=outcome.rate_limit.bucket,
            )
            logger.info(
                "Bucket rate limited; request requeued",
                extra={"bucket_key": key, "retry_after": outcome.retry_after},
            )
            self._requeue(entry)
        elif isinstance(outcome, ClientRejection):
            entry.reply._resolve(
                error=ClientError(
                    outcome.message,
                    status_code=outcome.status,
                    code=outcome.code,
                    method=request.method,
                    route=request.route,
                )
            )
        elif isinstance(outcome, (ServerFailure, TransportFailure)):
            self._retry_or_fail(entry, outcome, now)
        else:  # pragma: no cover - exhaustive over Classification
            raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")

    def _retry_or_fail(
        self,
        entry: _QueuedRequest,
        outcome: Union[ServerFailure, TransportFailure],
        now: float,
    ) -> None:
        entry.failures += 1
        request = entry.request
        status = outcome.status if isinstance(outcome, ServerFailure) else None

        if self._backoff.exhausted(entry.failures):
            if isinstance(outcome, ServerFailure):
                error: RestGateError = ServerError(
                    f"Server error after {entry.failures} attempts",
                    status_code=outcome.status,
                    attempts=entry.failures,
                    method=request.method,
                    route=request.route,
                )
            else:
                error = TransportError(
                    f"{request.method} {request.route} failed after {entry.failures} "
                    f"attempts: {outcome.cause}",
                    cause=outcome.cause,
                    attempts=entry.failures,
                )
            logger.error(
                "Retry budget exhausted",
                extra={"bucket_key": entry.key, "request_id": request.request_id},
            )
            entry.reply._resolve(error=error)
            return

        delay = self._backoff.delay(entry.failures)
        entry.not_before = now + delay
        emit_retry_event(
            bucket_key=entry.key,
            request_id=request.request_id,
            attempt=entry.failures,
            delay_sec=delay,
            reason="server_error" if status is not None else "transport_error",
            status_code=status,
        )
        self._requeue(entry)

    def _requeue(self, entry: _QueuedRequest) -> None:
        if entry.reply.done():
            return
        if self._closed:
            entry.reply._resolve(error=DispatcherClosed("Dispatcher closed before retry"))
            return
        self._table.get_or_create(entry.key).pending.appendleft(entry)
        self._active[entry.key] = None


def _earliest(current: Optional[float], candidate: Optional[float]) -> Optional[float]:
    if candidate is None:
        return current
    if current is None or candidate < current:
        return candidate
    return current
