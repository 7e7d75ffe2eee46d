"""Shared pytest fixtures."""

from collections.abc import Generator

import pytest

from outbound.observability.metrics import ClientMetrics


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None]:
    """Give every test a fresh metrics singleton."""
    ClientMetrics.reset()
    yield
    ClientMetrics.reset()
