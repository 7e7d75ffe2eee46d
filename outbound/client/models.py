"""Call options and results."""

import json
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from outbound.cancellation import CancellationToken


@dataclass(frozen=True)
class CallOptions:
    """Per-call options.

    Attributes:
        timeout_seconds: Per-attempt timeout (client default if None).
        cancel: Cancellation token honoured during network and backoff waits.
        correlation_id: Sent as the correlation header; generated if None.
        idempotency_key: Sent as ``Idempotency-Key`` on every attempt.
        max_attempts: Overrides the retry policy's ``max_attempts``.
    """

    timeout_seconds: float | None = None
    cancel: CancellationToken | None = None
    correlation_id: str | None = None
    idempotency_key: str | None = None
    max_attempts: int | None = None


class CallResult(BaseModel):
    """Successful result of a logical call. Read-only."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: int = Field(ge=100, le=599)
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    attempts: Annotated[int, Field(ge=1)]
    elapsed_ms: Annotated[float, Field(ge=0.0)]
    correlation_id: str

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (undecodable bytes replaced)."""
        return self.body.decode("utf-8", errors="replace")

    def json_body(self) -> Any:
        """Parse the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.body)
