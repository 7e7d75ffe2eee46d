"""Call log record model."""

import uuid
from datetime import UTC, datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class CallLogRecord(BaseModel):
    """Structured record of one call attempt.

    Append-only. Bodies and headers are masked and truncated by
    ``CallLogger`` before a record reaches a sink.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    log_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    endpoint: Annotated[str, Field(min_length=1)]
    method: str
    status_code: int | None = None
    request_headers: dict[str, str] = Field(default_factory=dict)
    request_body: str | None = None
    response_body: str | None = None
    correlation_id: str
    attempt: Annotated[int, Field(ge=1)]
    duration_ms: Annotated[float, Field(ge=0.0)]
    error: str | None = None
