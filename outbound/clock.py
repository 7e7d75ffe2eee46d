"""Injectable time sources and cancellable sleep."""

import time
from typing import Protocol

from outbound.cancellation import CancellationToken
from outbound.errors import CallCancelledError


class Clock(Protocol):
    """Monotonic time source in seconds."""

    def now(self) -> float:
        """Return the current monotonic time."""
        ...


class MonotonicClock:
    """Clock backed by ``time.monotonic``."""

    def now(self) -> float:
        """Return the current monotonic time."""
        return time.monotonic()


class Sleeper(Protocol):
    """Backoff waiter.

    Allows tests to skip real delays.
    """

    def sleep(self, seconds: float, cancel: CancellationToken | None = None) -> None:
        """Wait ``seconds``, raising CallCancelledError if cancelled first."""
        ...


class CancellableSleeper:
    """Sleeper that wakes as soon as the cancellation token fires."""

    def sleep(self, seconds: float, cancel: CancellationToken | None = None) -> None:
        """Wait ``seconds`` or until cancelled.

        Args:
            seconds: Delay in seconds.
            cancel: Optional cancellation token.

        Raises:
            CallCancelledError: If the token fires before the delay elapses.
        """
        if cancel is None:
            if seconds > 0:
                time.sleep(seconds)
            return
        cancel.raise_if_cancelled()
        if seconds > 0 and cancel.wait(seconds):
            raise CallCancelledError(cancel.reason)
