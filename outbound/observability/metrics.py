"""Metrics collection for the outbound client."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class ClientMetrics:
    """Metrics for outbound calls, token acquisition, and call logging.

    Singleton class shared by every component of the client. All
    increments happen under a lock so concurrent calls never lose counts.
    """

    http_attempts_total: dict[int, int] = field(default_factory=dict)
    http_retry_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    calls_total: int = 0
    calls_succeeded_total: int = 0
    call_duration_ms_total: float = 0.0
    token_acquisitions_total: int = 0
    token_acquisition_failures_total: int = 0
    token_cache_hits_total: int = 0
    log_write_failures_total: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["ClientMetrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_instance(cls) -> "ClientMetrics":
        """Get singleton metrics instance."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record_attempt(self, status_code: int) -> None:
        """Record an attempt that received a response.

        Args:
            status_code: HTTP status code.
        """
        with self._lock:
            self.http_attempts_total[status_code] = (
                self.http_attempts_total.get(status_code, 0) + 1
            )

    def record_retry(self) -> None:
        """Record a scheduled retry."""
        with self._lock:
            self.http_retry_total += 1

    def record_failure(self, failure_class: str) -> None:
        """Record a failed attempt.

        Args:
            failure_class: Classification such as ``HTTP_5XX`` or ``TIMEOUT``.
        """
        with self._lock:
            self.http_failures_total[failure_class] = (
                self.http_failures_total.get(failure_class, 0) + 1
            )

    def record_call(self, succeeded: bool, duration_ms: float) -> None:
        """Record a completed logical call.

        Args:
            succeeded: Whether the call returned a 2xx result.
            duration_ms: Total call duration in milliseconds.
        """
        with self._lock:
            self.calls_total += 1
            if succeeded:
                self.calls_succeeded_total += 1
            self.call_duration_ms_total += duration_ms

    def record_token_acquisition(self, succeeded: bool) -> None:
        """Record a token endpoint invocation."""
        with self._lock:
            self.token_acquisitions_total += 1
            if not succeeded:
                self.token_acquisition_failures_total += 1

    def record_token_cache_hit(self) -> None:
        """Record a token served from cache."""
        with self._lock:
            self.token_cache_hits_total += 1

    def record_log_failure(self) -> None:
        """Record a call log record that could not be written."""
        with self._lock:
            self.log_write_failures_total += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "http_attempts_total": dict(self.http_attempts_total),
                "http_retry_total": self.http_retry_total,
                "http_failures_total": dict(self.http_failures_total),
                "calls_total": self.calls_total,
                "calls_succeeded_total": self.calls_succeeded_total,
                "call_duration_ms_total": self.call_duration_ms_total,
                "token_acquisitions_total": self.token_acquisitions_total,
                "token_acquisition_failures_total": (
                    self.token_acquisition_failures_total
                ),
                "token_cache_hits_total": self.token_cache_hits_total,
                "log_write_failures_total": self.log_write_failures_total,
            }

    @property
    def avg_call_duration_ms(self) -> float:
        """Calculate average call duration.

        Returns:
            Average duration in milliseconds.
        """
        with self._lock:
            if self.calls_total == 0:
                return 0.0
            return self.call_duration_ms_total / self.calls_total
