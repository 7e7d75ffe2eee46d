"""Cancellation tokens and cancellable waits.

A ``CancellationToken`` combines an explicit cancel signal with an optional
deadline. The client suspends in only two places (the network wait and
the backoff wait) and both go through the helpers here.
"""

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

from outbound.errors import CallCancelledError


class CancellationToken:
    """Thread-safe cancellation signal with an optional deadline.

    Example:
        token = CancellationToken(timeout_seconds=5.0)
        client.call(request, CallOptions(cancel=token))
        # from another thread:
        token.cancel("user aborted")
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the token.

        Args:
            timeout_seconds: Optional deadline relative to now; once passed
                the token reports itself cancelled.
            clock: Monotonic time source.
        """
        self._clock = clock
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._reason = "cancelled"
        self._deadline = None if timeout_seconds is None else clock() + timeout_seconds

    @property
    def reason(self) -> str:
        """Why the token was cancelled."""
        if not self._event.is_set() and self._deadline_passed():
            return "deadline exceeded"
        return self._reason

    @property
    def is_cancelled(self) -> bool:
        """Whether cancel() was called or the deadline has passed."""
        return self._event.is_set() or self._deadline_passed()

    def _deadline_passed(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def cancel(self, reason: str = "cancelled") -> None:
        """Trigger cancellation and wake every registered waiter.

        Args:
            reason: Reason reported by the resulting error.
        """
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None if there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses.

        Args:
            timeout: Maximum seconds to wait (None waits indefinitely).

        Returns:
            True if the token is cancelled when the wait ends.
        """
        self._event.wait(_bounded(timeout, self.remaining()))
        return self.is_cancelled

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run once on cancel().

        The callback runs immediately if the token is already cancelled.
        Deadline expiry does not run callbacks; waiters bound their waits
        with ``remaining()`` instead.

        Args:
            callback: Zero-argument callable.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
        callback()
        return lambda: None

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        """Raise CallCancelledError if the token is cancelled."""
        if self.is_cancelled:
            raise CallCancelledError(self.reason)


def _bounded(timeout: float | None, remaining: float | None) -> float | None:
    if timeout is None:
        return remaining
    if remaining is None:
        return timeout
    return min(timeout, remaining)


def wait_for_future(
    future: "Future[Any]",
    cancel: CancellationToken | None = None,
    timeout: float | None = None,
) -> bool:
    """Wait for a future, waking early on cancellation.

    Args:
        future: Future to wait for.
        cancel: Optional cancellation token.
        timeout: Optional upper bound in seconds.

    Returns:
        True if the future completed, False if the wait ended first.
    """
    wake = threading.Event()
    future.add_done_callback(lambda _f: wake.set())
    unregister = cancel.add_callback(wake.set) if cancel is not None else None
    try:
        limit = _bounded(timeout, cancel.remaining() if cancel is not None else None)
        wake.wait(limit)
    finally:
        if unregister is not None:
            unregister()
    return future.done()
