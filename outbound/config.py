"""Configuration models for the outbound client."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from outbound.constants import (
    CORRELATION_ID_HEADER,
    DEFAULT_LOG_BODY_MAX_CHARS,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_TOKEN_SAFETY_MARGIN_SECONDS,
    DEFAULT_TOKEN_TIMEOUT_SECONDS,
)
from outbound.retry import RetryPolicy


class ClientConfig(BaseModel):
    """Configuration for the outbound client.

    Central configuration for transport timeouts, retry policy, token
    caching, and call logging.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "outbound-rest/1.0"
    )
    default_timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = 30.0
    hard_timeout_grace_seconds: Annotated[float, Field(ge=0.0, le=60.0)] = 5.0
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=100 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    follow_redirects: bool = True
    max_workers: Annotated[int, Field(ge=1, le=256)] = 16
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    token_safety_margin_seconds: Annotated[float, Field(ge=0.0, le=3600.0)] = (
        DEFAULT_TOKEN_SAFETY_MARGIN_SECONDS
    )
    token_timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = (
        DEFAULT_TOKEN_TIMEOUT_SECONDS
    )
    log_body_max_chars: Annotated[int, Field(ge=0)] = DEFAULT_LOG_BODY_MAX_CHARS
    correlation_header: Annotated[str, Field(min_length=1)] = CORRELATION_ID_HEADER
