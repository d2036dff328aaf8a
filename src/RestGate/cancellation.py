"""Cooperative cancellation primitives shared by callers and the scheduler.

A :class:`CancellationToken` can be passed alongside a request; when the
token fires, every reply registered on it is cancelled, which removes still
queued requests from their bucket and detaches in-flight ones from the
caller. :class:`CancellationTokenGroup` broadcasts cancellation across
related requests (for example, every request issued by one command handler).
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.add_callback(lambda: print("stopped"))
        >>> token.cancel()
        stopped
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], object]] = []

    def cancel(self) -> None:
        """Signal that cancellation has been requested and run registered callbacks."""
        with self._lock:
            if self._is_cancelled.is_set():
                return
            self._is_cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("cancellation callback failed")

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._is_cancelled.is_set()

    def add_callback(self, callback: Callable[[], object]) -> None:
        """Run ``callback`` on cancellation; runs immediately if already cancelled."""
        with self._lock:
            if not self._is_cancelled.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], object]) -> None:
        """Forget ``callback``; unknown callbacks are ignored."""
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass


class CancellationTokenGroup:
    """A group of cancellation tokens that can be cancelled together."""

    def __init__(self) -> None:
        self._tokens: list[CancellationToken] = []
        self._lock = threading.Lock()
        self._cancelled = False

    def add_token(self, token: CancellationToken) -> None:
        """Add a token to this group; it is cancelled at once if the group already was."""
        with self._lock:
            self._tokens.append(token)
            cancelled = self._cancelled
        if cancelled:
            token.cancel()

    def create_token(self) -> CancellationToken:
        """Create a new token and add it to this group."""
        token = CancellationToken()
        self.add_token(token)
        return token

    def remove_token(self, token: CancellationToken) -> None:
        """Remove ``token`` from this group if it is present."""
        with self._lock:
            try:
                self._tokens.remove(token)
            except ValueError:
                pass

    def cancel_all(self) -> None:
        """Cancel all tokens in this group."""
        with self._lock:
            self._cancelled = True
            tokens = list(self._tokens)
        for token in tokens:
            token.cancel()

    def is_any_cancelled(self) -> bool:
        """Check if any token in the group has been cancelled."""
        with self._lock:
            return any(token.is_cancelled() for token in self._tokens)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
