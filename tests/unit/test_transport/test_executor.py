"""Unit tests for the HTTP executor."""

import socket
import ssl
import threading
import time
from collections.abc import Generator

import httpx
import pytest

from outbound.cancellation import CancellationToken
from outbound.config import ClientConfig
from outbound.errors import CallCancelledError, TransportError, TransportErrorKind
from outbound.transport.executor import HttpExecutor, classify_connect_error
from outbound.transport.models import RequestSpec
from outbound.redact import REDACTED_VALUE
from tests.helpers.fakes import API_URL, ScriptedTransport, capturing_logger


API_PATH = "/orders"


def make_executor(
    transport: ScriptedTransport, **config: object
) -> HttpExecutor:
    return HttpExecutor(ClientConfig(**config), transport=transport.as_transport())  # type: ignore[arg-type]


@pytest.fixture
def request_spec() -> RequestSpec:
    """Create a simple GET request."""
    return RequestSpec(method="GET", url=API_URL, headers={"Accept": "text/plain"})


class TestSend:
    """Tests for successful sends."""

    def test_returns_raw_response(self, request_spec: RequestSpec) -> None:
        """Test status, headers, and body are returned as received."""
        transport = ScriptedTransport(
            routes={API_PATH: [httpx.Response(418, headers={"X-Tea": "yes"}, text="short")]}
        )

        with make_executor(transport) as executor:
            response = executor.send(request_spec)

        assert response.status == 418
        assert response.get_header("x-tea") == "yes"
        assert response.body == b"short"
        assert response.is_success is False

    def test_sends_headers_and_user_agent(self, request_spec: RequestSpec) -> None:
        """Test request headers and the configured User-Agent are sent."""
        transport = ScriptedTransport(routes={API_PATH: [httpx.Response(200)]})

        with make_executor(transport, user_agent="orders-sync/2.0") as executor:
            executor.send(request_spec)

        (sent,) = transport.requests
        assert sent.headers["Accept"] == "text/plain"
        assert sent.headers["User-Agent"] == "orders-sync/2.0"

    def test_non_2xx_is_not_an_error(self, request_spec: RequestSpec) -> None:
        """Test error statuses come back as responses."""
        transport = ScriptedTransport(routes={API_PATH: [httpx.Response(503)]})

        with make_executor(transport) as executor:
            assert executor.send(request_spec).status == 503


class TestLogRedaction:
    """Tests for header redaction in transport log events."""

    def test_custom_key_header_is_redacted(self) -> None:
        """Test a header named in sensitive_headers never reaches the log."""
        transport = ScriptedTransport(routes={API_PATH: [httpx.Response(200)]})
        capture, log = capturing_logger()
        request = RequestSpec(
            method="GET",
            url=API_URL,
            headers={"X-Service-Key": "super-secret-value-123", "Accept": "text/plain"},
        )

        with HttpExecutor(
            ClientConfig(), transport=transport.as_transport(), log=log
        ) as executor:
            executor.send(request, sensitive_headers=["x-service-key"])

        (event,) = [e for e in capture.entries if e["event"] == "request_complete"]
        assert event["headers"]["X-Service-Key"] == REDACTED_VALUE
        assert event["headers"]["Accept"] == "text/plain"
        assert "super-secret-value-123" not in repr(capture.entries)
        (sent,) = transport.requests
        assert sent.headers["X-Service-Key"] == "super-secret-value-123"


class TestErrorMapping:
    """Tests for transport error classification."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (httpx.ReadTimeout("read timed out"), TransportErrorKind.TIMEOUT),
            (httpx.ConnectTimeout("connect timed out"), TransportErrorKind.TIMEOUT),
            (
                httpx.ConnectError("[Errno 111] Connection refused"),
                TransportErrorKind.CONNECTION_REFUSED,
            ),
            (
                httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] verify failed"),
                TransportErrorKind.TLS_FAILURE,
            ),
            (
                httpx.ConnectError("[Errno -2] Name or service not known"),
                TransportErrorKind.OTHER,
            ),
            (httpx.RemoteProtocolError("peer closed"), TransportErrorKind.OTHER),
        ],
    )
    def test_maps_httpx_errors(
        self,
        request_spec: RequestSpec,
        error: Exception,
        kind: TransportErrorKind,
    ) -> None:
        """Test httpx exceptions become classified TransportErrors."""
        transport = ScriptedTransport(routes={API_PATH: [error]})

        with make_executor(transport) as executor, pytest.raises(TransportError) as exc_info:
            executor.send(request_spec)

        assert exc_info.value.kind == kind

    def test_response_size_limit(self, request_spec: RequestSpec) -> None:
        """Test oversize bodies are rejected as OTHER."""
        transport = ScriptedTransport(
            routes={API_PATH: [httpx.Response(200, content=b"x" * 4096)]}
        )

        with (
            make_executor(transport, max_response_size_bytes=1024) as executor,
            pytest.raises(TransportError) as exc_info,
        ):
            executor.send(request_spec)

        assert exc_info.value.kind == TransportErrorKind.OTHER
        assert "exceeds limit" in str(exc_info.value)

    def test_hard_timeout(self, request_spec: RequestSpec) -> None:
        """Test an unresponsive transport is abandoned after timeout plus grace."""
        release = threading.Event()

        def hang(request: httpx.Request) -> httpx.Response:
            release.wait(5)
            return httpx.Response(200)

        transport = ScriptedTransport(routes={API_PATH: [hang]})
        executor = make_executor(transport, hard_timeout_grace_seconds=0.05)
        try:
            start = time.monotonic()
            with pytest.raises(TransportError) as exc_info:
                executor.send(request_spec, timeout=0.05)
            elapsed = time.monotonic() - start
        finally:
            release.set()
            executor.close()

        assert exc_info.value.kind == TransportErrorKind.TIMEOUT
        assert elapsed < 2.0


class TestCancellation:
    """Tests for cancellation during a send."""

    def test_cancel_while_waiting(self, request_spec: RequestSpec) -> None:
        """Test cancelling releases the caller before the response arrives."""
        release = threading.Event()

        def hang(request: httpx.Request) -> httpx.Response:
            release.wait(5)
            return httpx.Response(200)

        transport = ScriptedTransport(routes={API_PATH: [hang]})
        executor = make_executor(transport)
        token = CancellationToken()
        threading.Timer(0.05, token.cancel, args=("caller gave up",)).start()
        try:
            with pytest.raises(CallCancelledError, match="caller gave up"):
                executor.send(request_spec, cancel=token)
        finally:
            release.set()
            executor.close()

    def test_cancelled_before_send(self, request_spec: RequestSpec) -> None:
        """Test a cancelled token sends nothing."""
        transport = ScriptedTransport(routes={API_PATH: [httpx.Response(200)]})
        token = CancellationToken()
        token.cancel()

        with make_executor(transport) as executor, pytest.raises(CallCancelledError):
            executor.send(request_spec, cancel=token)

        assert transport.requests == []


class TestClassifyConnectError:
    """Tests for classify_connect_error cause-chain inspection."""

    @staticmethod
    def _chained(cause: BaseException) -> httpx.ConnectError:
        try:
            try:
                raise cause
            except BaseException as inner:
                raise httpx.ConnectError("connect failed") from inner
        except httpx.ConnectError as outer:
            return outer

    def test_ssl_cause(self) -> None:
        """Test an SSLError cause is TLS_FAILURE."""
        error = self._chained(ssl.SSLError(1, "handshake failure"))

        assert classify_connect_error(error) == TransportErrorKind.TLS_FAILURE

    def test_dns_cause(self) -> None:
        """Test a gaierror cause is OTHER."""
        error = self._chained(socket.gaierror(-2, "Name or service not known"))

        assert classify_connect_error(error) == TransportErrorKind.OTHER

    def test_refused_cause(self) -> None:
        """Test a ConnectionRefusedError cause is CONNECTION_REFUSED."""
        error = self._chained(ConnectionRefusedError(111, "Connection refused"))

        assert classify_connect_error(error) == TransportErrorKind.CONNECTION_REFUSED


@pytest.fixture
def closed_executor() -> Generator[HttpExecutor]:
    """Executor that has already been closed."""
    executor = HttpExecutor(transport=ScriptedTransport().as_transport())
    executor.close()
    yield executor


def test_send_after_close_fails(closed_executor: HttpExecutor, request_spec: RequestSpec) -> None:
    """Test a closed executor rejects new work."""
    with pytest.raises(RuntimeError):
        closed_executor.send(request_spec)
