"""HTTP executor: one request, one response, no retries."""

import contextvars
import socket
import ssl
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from types import TracebackType

import httpx
import structlog
from structlog.typing import BindableLogger

from outbound.cancellation import CancellationToken, wait_for_future
from outbound.config import ClientConfig
from outbound.constants import DEFAULT_CHUNK_SIZE
from outbound.errors import CallCancelledError, TransportError, TransportErrorKind
from outbound.redact import redact_headers, redact_url_credentials
from outbound.transport.models import RawResponse, RequestSpec


logger = structlog.get_logger()

_TLS_MARKERS = ("SSL", "TLS", "CERTIFICATE")


class ResponseSizeExceededError(Exception):
    """Raised when response size exceeds the configured limit."""


class HttpExecutor:
    """Pure HTTP transport.

    Sends a fully built request and returns the raw response, or raises
    ``TransportError``. Requests run on a bounded worker pool so that the
    calling thread can stop waiting on cancellation; every attempt is also
    bounded by a hard timeout independent of the caller's token.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        log: BindableLogger | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            config: Client configuration.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            log: Logger to emit through (module logger if None).
        """
        self._config = config or ClientConfig()
        self._client = httpx.Client(
            transport=transport,
            follow_redirects=self._config.follow_redirects,
            headers={"User-Agent": self._config.user_agent},
        )
        self._pool = ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="outbound-http",
        )
        self._log = (log or logger).bind(component="transport")

    def __enter__(self) -> "HttpExecutor":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        """Stop accepting work and release pooled connections."""
        self._pool.shutdown(wait=False, cancel_futures=True)
        self._client.close()

    def send(
        self,
        request: RequestSpec,
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
        sensitive_headers: Iterable[str] = (),
    ) -> RawResponse:
        """Send a single request.

        Args:
            request: Fully built request (auth header already applied).
            timeout: Per-attempt timeout in seconds (config default if None).
            cancel: Optional cancellation token.
            sensitive_headers: Extra header names to redact in log events,
                such as a credential's custom key header.

        Returns:
            RawResponse with status, headers, and body.

        Raises:
            TransportError: If no response was received.
            CallCancelledError: If the token fired before the response arrived.
        """
        if cancel is not None:
            cancel.raise_if_cancelled()

        effective_timeout = timeout or self._config.default_timeout_seconds
        hard_timeout = effective_timeout + self._config.hard_timeout_grace_seconds

        # Carry structlog contextvars (correlation id) onto the worker thread.
        context = contextvars.copy_context()
        future = self._pool.submit(
            context.run,
            self._send_blocking,
            request,
            effective_timeout,
            tuple(sensitive_headers),
        )
        if wait_for_future(future, cancel=cancel, timeout=hard_timeout):
            return future.result()

        future.cancel()
        if cancel is not None and cancel.is_cancelled:
            self._log.info(
                "request_cancelled",
                method=request.method.value,
                url=redact_url_credentials(request.url),
                reason=cancel.reason,
            )
            raise CallCancelledError(cancel.reason)

        self._log.warning(
            "request_hard_timeout",
            method=request.method.value,
            url=redact_url_credentials(request.url),
            hard_timeout_seconds=hard_timeout,
        )
        msg = f"no response within hard timeout of {hard_timeout:.1f}s"
        raise TransportError(TransportErrorKind.TIMEOUT, msg)

    def _send_blocking(
        self,
        request: RequestSpec,
        timeout: float,
        sensitive_headers: tuple[str, ...],
    ) -> RawResponse:
        """Execute the request on a worker thread.

        Args:
            request: Request to send.
            timeout: httpx timeout in seconds.
            sensitive_headers: Extra header names to redact in log events.

        Returns:
            RawResponse from the server.

        Raises:
            TransportError: On any httpx failure.
        """
        start_ns = time.perf_counter_ns()
        log = self._log.bind(
            method=request.method.value,
            url=redact_url_credentials(request.url),
            headers=redact_headers(request.headers, sensitive_headers),
        )
        try:
            with self._client.stream(
                request.method.value,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=timeout,
            ) as response:
                body = self._read_body_with_limit(response)
                raw = RawResponse(
                    status=response.status_code,
                    headers=dict(response.headers),
                    body=body,
                )
        except httpx.TimeoutException as e:
            log.debug("request_timeout", error=str(e))
            msg = f"Request timed out: {e}"
            raise TransportError(TransportErrorKind.TIMEOUT, msg) from e
        except httpx.ConnectError as e:
            kind = classify_connect_error(e)
            log.debug("request_connect_failed", error=str(e), kind=kind.value)
            msg = f"Connection failed: {e}"
            raise TransportError(kind, msg) from e
        except ResponseSizeExceededError as e:
            raise TransportError(TransportErrorKind.OTHER, str(e)) from e
        except httpx.HTTPError as e:
            log.debug("request_failed", error=str(e))
            msg = f"HTTP error: {e}"
            raise TransportError(TransportErrorKind.OTHER, msg) from e

        log.debug(
            "request_complete",
            status_code=raw.status,
            bytes=len(raw.body),
            duration_ms=round((time.perf_counter_ns() - start_ns) / 1_000_000, 2),
        )
        return raw

    def _read_body_with_limit(self, response: httpx.Response) -> bytes:
        """Read response body with size limit.

        Args:
            response: Streaming HTTP response.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
        """
        max_size = self._config.max_response_size_bytes

        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            msg = f"Response size {content_length} exceeds limit {max_size}"
            raise ResponseSizeExceededError(msg)

        buffer = BytesIO()
        total_read = 0
        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)

        return buffer.getvalue()


def classify_connect_error(error: httpx.ConnectError) -> TransportErrorKind:
    """Classify a connection failure by walking its cause chain.

    Args:
        error: The httpx connection error.

    Returns:
        TLS_FAILURE, OTHER (DNS), or CONNECTION_REFUSED.
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLError):
            return TransportErrorKind.TLS_FAILURE
        if isinstance(current, socket.gaierror):
            return TransportErrorKind.OTHER
        if isinstance(current, ConnectionRefusedError):
            return TransportErrorKind.CONNECTION_REFUSED
        current = current.__cause__ or current.__context__

    message = str(error).upper()
    if any(marker in message for marker in _TLS_MARKERS):
        return TransportErrorKind.TLS_FAILURE
    if "NAME OR SERVICE NOT KNOWN" in message or "NODENAME NOR SERVNAME" in message:
        return TransportErrorKind.OTHER
    return TransportErrorKind.CONNECTION_REFUSED
