"""Retry policy for outbound calls.

The policy is a pure decision function: given the attempt number and the
outcome of that attempt, it says whether to retry and how long to wait.
Waiting itself is the client's job.
"""

import random
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from outbound.constants import (
    DEFAULT_RETRY_STATUSES,
    HTTP_STATUS_UNAUTHORIZED,
    MAX_RETRY_AFTER_SECONDS,
)
from outbound.errors import (
    OutboundError,
    TokenAcquisitionError,
    TransportError,
    TransportErrorKind,
)


class RetryDecision(BaseModel):
    """Outcome of a retry evaluation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    retry: bool
    delay_seconds: float = 0.0
    refresh_auth: bool = False
    reason: str = ""


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Rules, evaluated in order:

    1. ``attempt >= max_attempts`` -> no retry.
    2. 401 on a refreshable credential (once per call) -> retry immediately
       after forcing a token refresh.
    3. Status in ``retry_statuses`` -> retry.
    4. Transport error of a kind in ``retry_transport_kinds``, or a token
       acquisition failure -> retry.
    5. Anything else (other 4xx/5xx, 2xx) -> no retry.

    Delay is exponential: ``base_delay_seconds * 2 ** (attempt - 1)``, capped
    at ``max_delay_seconds``, optionally with jitter.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    base_delay_seconds: Annotated[float, Field(ge=0.0, le=60.0)] = 1.0
    max_delay_seconds: Annotated[float, Field(ge=0.0, le=300.0)] = 30.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.0
    retry_statuses: frozenset[int] = DEFAULT_RETRY_STATUSES
    retry_transport_kinds: frozenset[TransportErrorKind] = frozenset(
        {TransportErrorKind.TIMEOUT, TransportErrorKind.CONNECTION_REFUSED}
    )
    retry_token_failures: bool = True
    refresh_on_unauthorized: bool = True
    honor_retry_after: bool = True

    def should_retry(
        self,
        attempt: int,
        outcome: int | OutboundError,
        *,
        can_refresh_auth: bool = False,
        retry_after_seconds: float | None = None,
    ) -> RetryDecision:
        """Decide whether to retry after an attempt.

        Args:
            attempt: Attempt number that just finished (1-indexed).
            outcome: Status code of the response, or the error raised.
            can_refresh_auth: Whether a 401 can be cured by a token refresh.
            retry_after_seconds: Parsed Retry-After value, if the server sent one.

        Returns:
            RetryDecision describing whether and when to retry.
        """
        if attempt >= self.max_attempts:
            return RetryDecision(retry=False, reason="max_attempts_reached")

        if isinstance(outcome, int):
            if (
                outcome == HTTP_STATUS_UNAUTHORIZED
                and can_refresh_auth
                and self.refresh_on_unauthorized
            ):
                return RetryDecision(
                    retry=True, refresh_auth=True, reason="unauthorized_refresh"
                )
            if outcome in self.retry_statuses:
                delay = self.get_delay_seconds(attempt)
                if self.honor_retry_after and retry_after_seconds is not None:
                    delay = max(
                        delay, min(retry_after_seconds, MAX_RETRY_AFTER_SECONDS)
                    )
                return RetryDecision(
                    retry=True, delay_seconds=delay, reason=f"status_{outcome}"
                )
            return RetryDecision(retry=False, reason=f"status_{outcome}")

        if isinstance(outcome, TransportError):
            if outcome.kind in self.retry_transport_kinds:
                return RetryDecision(
                    retry=True,
                    delay_seconds=self.get_delay_seconds(attempt),
                    reason=outcome.kind.value.lower(),
                )
            return RetryDecision(retry=False, reason=outcome.kind.value.lower())

        if isinstance(outcome, TokenAcquisitionError) and self.retry_token_failures:
            return RetryDecision(
                retry=True,
                delay_seconds=self.get_delay_seconds(attempt),
                reason="token_acquisition_failed",
            )

        return RetryDecision(retry=False, reason=type(outcome).__name__)

    def get_delay_seconds(self, attempt: int) -> float:
        """Calculate delay before the attempt following ``attempt``.

        Args:
            attempt: Attempt number that just finished (1-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self.base_delay_seconds * (2 ** max(attempt - 1, 0))
        delay = min(delay, self.max_delay_seconds)
        if self.jitter_factor:
            delay += delay * self.jitter_factor * random.random()  # noqa: S311
        return delay


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header value.

    Args:
        value: Header value (seconds or HTTP date).
        now: Reference time for HTTP dates (defaults to current UTC time).

    Returns:
        Seconds to wait, or None if not parseable.
    """
    if not value:
        return None

    try:
        return max(0.0, float(int(value.strip())))
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(value)
    except (ValueError, TypeError):
        return None
    # "-0000" and zoneless dates parse as naive; HTTP dates are always GMT
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    reference = now or datetime.now(UTC)
    return max(0.0, (dt - reference).total_seconds())
