"""Observability module for logging and metrics."""

from outbound.observability.logging import (
    call_context,
    configure_logging,
)
from outbound.observability.metrics import ClientMetrics


__all__ = [
    "ClientMetrics",
    "call_context",
    "configure_logging",
]
