"""REST client orchestration."""

from outbound.client.client import RestClient
from outbound.client.models import CallOptions, CallResult
from outbound.retry import RetryDecision, RetryPolicy, parse_retry_after


__all__ = [
    "CallOptions",
    "CallResult",
    "RestClient",
    "RetryDecision",
    "RetryPolicy",
    "parse_retry_after",
]
