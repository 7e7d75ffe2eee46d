"""REST client: credentials, retries, and call logging around one call."""

import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

import structlog

from outbound.calllog.logger import CallLogger
from outbound.calllog.models import CallLogRecord
from outbound.calllog.sinks import StructlogCallLogSink
from outbound.cancellation import CancellationToken
from outbound.client.models import CallOptions, CallResult
from outbound.clock import CancellableSleeper, Sleeper
from outbound.config import ClientConfig
from outbound.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    IDEMPOTENCY_KEY_HEADER,
)
from outbound.credentials.models import (
    AuthMaterial,
    OAuthClientMaterial,
    StaticKeyMaterial,
)
from outbound.credentials.provider import CredentialProvider
from outbound.errors import (
    CallCancelledError,
    CallFailedError,
    OutboundError,
    TokenAcquisitionError,
    TransportError,
)
from outbound.observability.logging import call_context
from outbound.observability.metrics import ClientMetrics
from outbound.redact import decode_body, redact_url_credentials
from outbound.retry import RetryDecision, RetryPolicy, parse_retry_after
from outbound.tokens.cache import TokenCache
from outbound.tokens.endpoint import TokenEndpoint
from outbound.tokens.models import CachedToken
from outbound.transport.executor import HttpExecutor
from outbound.transport.models import (
    HeaderInput,
    HttpMethod,
    RawResponse,
    RequestSpec,
    merge_headers,
)


logger = structlog.get_logger()


@dataclass
class _ResolvedAuth:
    """Auth applied to one attempt, plus what must be scrubbed from logs."""

    headers: dict[str, str] = field(default_factory=dict)
    token: CachedToken | None = None
    secrets: list[str] = field(default_factory=list)
    sensitive_headers: list[str] = field(default_factory=list)


class RestClient:
    """Performs logical REST calls.

    Orchestrates credential resolution, token caching, transport, retry
    decisions, and call logging. Every attempt, successful or not,
    produces exactly one call log record.
    """

    def __init__(
        self,
        executor: HttpExecutor,
        provider: CredentialProvider,
        *,
        config: ClientConfig | None = None,
        token_cache: TokenCache | None = None,
        call_logger: CallLogger | None = None,
        sleeper: Sleeper | None = None,
        on_close: Iterable[Callable[[], None]] = (),
    ) -> None:
        """Initialize the client.

        Args:
            executor: HTTP executor.
            provider: Credential provider.
            config: Client configuration (defaults if None).
            token_cache: Token cache; built from ``provider`` if None.
            call_logger: Call logger; logs through structlog if None.
            sleeper: Backoff waiter; a cancellable real sleep if None.
            on_close: Callbacks run by close(), for resources the client owns.
        """
        self._config = config or ClientConfig()
        self._executor = executor
        self._provider = provider
        self._token_cache = token_cache or TokenCache(
            provider,
            TokenEndpoint(executor, timeout_seconds=self._config.token_timeout_seconds),
            safety_margin_seconds=self._config.token_safety_margin_seconds,
        )
        self._call_logger = call_logger or CallLogger(
            StructlogCallLogSink(), max_body_chars=self._config.log_body_max_chars
        )
        self._sleeper = sleeper or CancellableSleeper()
        self._on_close = list(on_close)
        self._metrics = ClientMetrics.get_instance()
        self._log = logger.bind(component="client")

    @property
    def token_cache(self) -> TokenCache:
        """Get the token cache."""
        return self._token_cache

    def __enter__(self) -> "RestClient":
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
        """Release the executor's connections and workers, then owned resources."""
        self._executor.close()
        for callback in self._on_close:
            callback()

    def call(
        self,
        request: RequestSpec,
        options: CallOptions | None = None,
    ) -> CallResult:
        """Perform one logical call, retrying per the retry policy.

        Args:
            request: Request to send.
            options: Per-call options.

        Returns:
            CallResult for a 2xx response.

        Raises:
            CredentialNotFoundError: If the request's credential is unknown.
            CallFailedError: If the call ended without a 2xx response.
            CallCancelledError: If the caller's token fired first.
        """
        options = options or CallOptions()
        correlation_id = options.correlation_id or str(uuid.uuid4())
        with call_context(correlation_id):
            return self._call(request, options, correlation_id)

    def _call(
        self,
        request: RequestSpec,
        options: CallOptions,
        correlation_id: str,
    ) -> CallResult:
        policy = self._config.retry_policy
        if options.max_attempts is not None:
            policy = policy.model_copy(update={"max_attempts": options.max_attempts})
        cancel = options.cancel

        # Fails before any attempt so an unknown name never looks like a
        # transport problem.
        material = (
            self._provider.resolve(request.credential_name)
            if request.credential_name
            else None
        )

        extra_headers = {self._config.correlation_header: correlation_id}
        if options.idempotency_key:
            extra_headers[IDEMPOTENCY_KEY_HEADER] = options.idempotency_key
        prepared = request.with_headers(extra_headers)

        log = self._log.bind(
            method=request.method.value,
            endpoint=redact_url_credentials(request.url),
            credential=request.credential_name,
        )
        start_ns = time.perf_counter_ns()
        attempt = 1
        auth_refreshed = False

        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()

            auth = _ResolvedAuth()
            sent = prepared
            attempt_ns = time.perf_counter_ns()
            outcome: RawResponse | OutboundError
            try:
                auth = self._resolve_auth(material, cancel)
                sent = prepared.with_headers(auth.headers)
                outcome = self._executor.send(
                    sent,
                    timeout=options.timeout_seconds,
                    cancel=cancel,
                    sensitive_headers=auth.sensitive_headers,
                )
            except (TransportError, TokenAcquisitionError) as e:
                outcome = e
            except CallCancelledError as e:
                self._record_attempt(
                    sent, e, attempt, attempt_ns, correlation_id, auth
                )
                self._metrics.record_call(False, _elapsed_ms(start_ns))
                log.info("call_cancelled", attempt=attempt, reason=e.reason)
                raise

            self._record_attempt(sent, outcome, attempt, attempt_ns, correlation_id, auth)

            if isinstance(outcome, RawResponse) and outcome.is_success:
                elapsed_ms = _elapsed_ms(start_ns)
                self._metrics.record_call(True, elapsed_ms)
                log.info(
                    "call_succeeded",
                    status_code=outcome.status,
                    attempts=attempt,
                    duration_ms=round(elapsed_ms, 2),
                )
                return CallResult(
                    status_code=outcome.status,
                    headers=outcome.headers,
                    body=outcome.body,
                    attempts=attempt,
                    elapsed_ms=elapsed_ms,
                    correlation_id=correlation_id,
                )

            decision = self._evaluate(policy, attempt, outcome, auth, auth_refreshed)

            if not decision.retry:
                elapsed_ms = _elapsed_ms(start_ns)
                self._metrics.record_call(False, elapsed_ms)
                log.warning(
                    "call_failed",
                    attempts=attempt,
                    reason=decision.reason,
                    duration_ms=round(elapsed_ms, 2),
                )
                raise _call_failed(outcome, attempt, correlation_id)

            if decision.refresh_auth and auth.token is not None:
                self._token_cache.invalidate(
                    auth.token.credential_name, stale=auth.token
                )
                auth_refreshed = True

            self._metrics.record_retry()
            log.info(
                "call_retry_scheduled",
                attempt=attempt,
                delay_seconds=round(decision.delay_seconds, 3),
                reason=decision.reason,
            )
            try:
                self._sleeper.sleep(decision.delay_seconds, cancel)
            except CallCancelledError as e:
                self._metrics.record_call(False, _elapsed_ms(start_ns))
                log.info("call_cancelled", attempt=attempt, reason=e.reason)
                raise
            attempt += 1

    def _resolve_auth(
        self,
        material: AuthMaterial | None,
        cancel: CancellationToken | None,
    ) -> _ResolvedAuth:
        """Build the auth header for one attempt."""
        if isinstance(material, StaticKeyMaterial):
            value = material.header_value.get_secret_value()
            return _ResolvedAuth(
                headers={material.header_name: value},
                secrets=[value],
                sensitive_headers=[material.header_name],
            )

        if isinstance(material, OAuthClientMaterial):
            token = self._token_cache.get_token(material.credential_name, cancel=cancel)
            return _ResolvedAuth(
                headers={"Authorization": token.authorization_value()},
                token=token,
                secrets=[
                    token.access_token.get_secret_value(),
                    material.client_secret.get_secret_value(),
                ],
                sensitive_headers=["Authorization"],
            )

        return _ResolvedAuth()

    def _evaluate(
        self,
        policy: RetryPolicy,
        attempt: int,
        outcome: RawResponse | OutboundError,
        auth: _ResolvedAuth,
        auth_refreshed: bool,
    ) -> RetryDecision:
        """Record failure metrics and consult the retry policy."""
        if isinstance(outcome, RawResponse):
            self._metrics.record_failure(_status_class(outcome.status))
            return policy.should_retry(
                attempt,
                outcome.status,
                can_refresh_auth=auth.token is not None and not auth_refreshed,
                retry_after_seconds=parse_retry_after(outcome.get_header("retry-after")),
            )

        if isinstance(outcome, TransportError):
            self._metrics.record_failure(outcome.kind.value)
        else:
            self._metrics.record_failure("TOKEN_ACQUISITION")
        return policy.should_retry(attempt, outcome)

    def _record_attempt(
        self,
        sent: RequestSpec,
        outcome: RawResponse | OutboundError,
        attempt: int,
        attempt_ns: int,
        correlation_id: str,
        auth: _ResolvedAuth,
    ) -> None:
        """Write the call log record for one attempt."""
        if isinstance(outcome, RawResponse):
            self._metrics.record_attempt(outcome.status)
            status_code: int | None = outcome.status
            response_body = decode_body(outcome.body)
            error = None
        else:
            status_code = None
            response_body = None
            error = f"{type(outcome).__name__}: {outcome}"

        record = CallLogRecord(
            endpoint=sent.url,
            method=sent.method.value,
            status_code=status_code,
            request_headers=dict(sent.headers),
            request_body=decode_body(sent.body),
            response_body=response_body,
            correlation_id=correlation_id,
            attempt=attempt,
            duration_ms=_elapsed_ms(attempt_ns),
            error=error,
        )
        self._call_logger.record(
            record, secrets=auth.secrets, sensitive_headers=auth.sensitive_headers
        )

    def request(
        self,
        method: HttpMethod | str,
        url: str,
        *,
        payload: Any = None,
        headers: HeaderInput | None = None,
        credential_name: str | None = None,
        options: CallOptions | None = None,
    ) -> CallResult:
        """Build a request (JSON body if ``payload`` is given) and call it."""
        if payload is not None:
            request = RequestSpec.with_json(
                method, url, payload, headers=headers, credential_name=credential_name
            )
        else:
            request = RequestSpec(
                method=method,  # type: ignore[arg-type]
                url=url,
                headers=merge_headers(headers or {}),
                credential_name=credential_name,
            )
        return self.call(request, options)

    def get(self, url: str, **kwargs: Any) -> CallResult:
        """GET ``url``."""
        return self.request(HttpMethod.GET, url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> CallResult:
        """POST to ``url``."""
        return self.request(HttpMethod.POST, url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> CallResult:
        """PUT to ``url``."""
        return self.request(HttpMethod.PUT, url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> CallResult:
        """PATCH ``url``."""
        return self.request(HttpMethod.PATCH, url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> CallResult:
        """DELETE ``url``."""
        return self.request(HttpMethod.DELETE, url, **kwargs)


def _elapsed_ms(start_ns: int) -> float:
    return (time.perf_counter_ns() - start_ns) / 1_000_000


def _status_class(status_code: int) -> str:
    if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
        return "RATE_LIMITED"
    if status_code >= HTTP_STATUS_SERVER_ERROR_MIN:
        return "HTTP_5XX"
    if status_code >= HTTP_STATUS_BAD_REQUEST:
        return "HTTP_4XX"
    return "HTTP_UNEXPECTED"


def _call_failed(
    outcome: RawResponse | OutboundError,
    attempts: int,
    correlation_id: str,
) -> CallFailedError:
    if isinstance(outcome, RawResponse):
        return CallFailedError(
            attempts=attempts,
            correlation_id=correlation_id,
            final_status=outcome.status,
            response_body=outcome.body,
        )
    return CallFailedError(
        attempts=attempts,
        correlation_id=correlation_id,
        final_error=outcome,
    )
