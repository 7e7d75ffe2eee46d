"""Unit tests for cancellation tokens and cancellable waits."""

import threading
from concurrent.futures import Future

import pytest

from outbound.cancellation import CancellationToken, wait_for_future
from outbound.clock import CancellableSleeper
from outbound.errors import CallCancelledError
from tests.helpers.fakes import FakeClock


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel_sets_reason(self) -> None:
        """Test cancel() marks the token and keeps the first reason."""
        token = CancellationToken()

        token.cancel("shutdown")
        token.cancel("second")

        assert token.is_cancelled is True
        assert token.reason == "shutdown"

    def test_deadline(self) -> None:
        """Test a token reports cancellation once its deadline passes."""
        clock = FakeClock()
        token = CancellationToken(timeout_seconds=5.0, clock=clock.now)

        assert token.is_cancelled is False
        assert token.remaining() == 5.0
        clock.advance(5.0)
        assert token.is_cancelled is True
        assert token.reason == "deadline exceeded"
        assert token.remaining() == 0.0

    def test_raise_if_cancelled(self) -> None:
        """Test raise_if_cancelled raises only after cancel()."""
        token = CancellationToken()
        token.raise_if_cancelled()

        token.cancel("stop")

        with pytest.raises(CallCancelledError, match="stop"):
            token.raise_if_cancelled()

    def test_callbacks_run_once(self) -> None:
        """Test callbacks run on cancel and can be unregistered."""
        token = CancellationToken()
        calls: list[str] = []
        token.add_callback(lambda: calls.append("a"))
        unregister = token.add_callback(lambda: calls.append("b"))
        unregister()

        token.cancel()
        token.cancel()

        assert calls == ["a"]

    def test_callback_after_cancel_runs_immediately(self) -> None:
        """Test registering on a cancelled token runs the callback."""
        token = CancellationToken()
        token.cancel()
        calls: list[str] = []

        token.add_callback(lambda: calls.append("late"))

        assert calls == ["late"]

    def test_wait_returns_on_cancel(self) -> None:
        """Test wait() wakes when another thread cancels."""
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()

        assert token.wait(5.0) is True
        timer.join()


class TestWaitForFuture:
    """Tests for wait_for_future."""

    def test_completed_future(self) -> None:
        """Test a finished future returns True."""
        future: Future[int] = Future()
        future.set_result(1)

        assert wait_for_future(future) is True

    def test_timeout(self) -> None:
        """Test an unfinished future returns False after the timeout."""
        future: Future[int] = Future()

        assert wait_for_future(future, timeout=0.01) is False

    def test_cancel_wakes_waiter(self) -> None:
        """Test cancellation ends the wait early."""
        future: Future[int] = Future()
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()

        assert wait_for_future(future, cancel=token, timeout=5.0) is False
        timer.join()


class TestCancellableSleeper:
    """Tests for CancellableSleeper."""

    def test_sleep_without_token(self) -> None:
        """Test a zero delay returns immediately."""
        CancellableSleeper().sleep(0.0)

    def test_sleep_cancelled(self) -> None:
        """Test cancellation interrupts a long sleep."""
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel, args=("user abort",))
        timer.start()

        with pytest.raises(CallCancelledError, match="user abort"):
            CancellableSleeper().sleep(30.0, token)
        timer.join()

    def test_sleep_completes(self) -> None:
        """Test an uncancelled sleep returns normally."""
        CancellableSleeper().sleep(0.01, CancellationToken())
