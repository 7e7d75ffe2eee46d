"""Call logger: sanitizes records and writes them to a sink, best effort."""

from collections.abc import Iterable

import structlog

from outbound.calllog.models import CallLogRecord
from outbound.calllog.sinks import CallLogSink
from outbound.constants import DEFAULT_LOG_BODY_MAX_CHARS
from outbound.observability.metrics import ClientMetrics
from outbound.redact import (
    mask_body,
    redact_headers,
    redact_url_credentials,
    scrub_secrets,
    truncate,
)


logger = structlog.get_logger()


class CallLogger:
    """Persists one sanitized record per call attempt.

    Sensitive header names and body fields are masked, known secret
    values are scrubbed verbatim, and bodies are truncated to
    ``max_body_chars``. A failing sink never fails the call: the failure
    is counted in ``ClientMetrics.log_write_failures_total``.
    """

    def __init__(
        self,
        sink: CallLogSink,
        max_body_chars: int = DEFAULT_LOG_BODY_MAX_CHARS,
    ) -> None:
        """Initialize the call logger.

        Args:
            sink: Destination for sanitized records.
            max_body_chars: Bodies longer than this are truncated.
        """
        self._sink = sink
        self._max_body_chars = max_body_chars
        self._metrics = ClientMetrics.get_instance()
        self._log = logger.bind(component="calllog")

    def sanitize(
        self,
        record: CallLogRecord,
        secrets: Iterable[str] = (),
        sensitive_headers: Iterable[str] = (),
    ) -> CallLogRecord:
        """Return a copy of ``record`` that is safe to persist.

        Args:
            record: Record possibly containing secret material.
            secrets: Secret values to scrub wherever they appear.
            sensitive_headers: Extra header names to mask.

        Returns:
            Sanitized record.
        """
        secret_values = [s for s in secrets if s]

        def _clean_body(body: str | None) -> str | None:
            if body is None:
                return None
            masked = scrub_secrets(mask_body(body), secret_values)
            return truncate(masked, self._max_body_chars)

        headers = {
            key: scrub_secrets(value, secret_values)
            for key, value in redact_headers(
                record.request_headers, sensitive_headers
            ).items()
        }
        error = (
            scrub_secrets(record.error, secret_values)
            if record.error is not None
            else None
        )

        return record.model_copy(
            update={
                "endpoint": scrub_secrets(
                    redact_url_credentials(record.endpoint), secret_values
                ),
                "request_headers": headers,
                "request_body": _clean_body(record.request_body),
                "response_body": _clean_body(record.response_body),
                "error": error,
            }
        )

    def record(
        self,
        record: CallLogRecord,
        secrets: Iterable[str] = (),
        sensitive_headers: Iterable[str] = (),
    ) -> bool:
        """Sanitize and persist a record.

        Args:
            record: Record to persist.
            secrets: Secret values to scrub.
            sensitive_headers: Extra header names to mask.

        Returns:
            True if the sink accepted the record, False otherwise.
        """
        try:
            sanitized = self.sanitize(record, secrets, sensitive_headers)
            self._sink.append(sanitized)
        except Exception as e:  # noqa: BLE001
            self._metrics.record_log_failure()
            self._log.warning(
                "call_log_write_failed",
                log_id=record.log_id,
                correlation_id=record.correlation_id,
                error_type=type(e).__name__,
            )
            return False
        return True
