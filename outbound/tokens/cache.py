"""Per-credential access token cache with single-flight acquisition."""

import threading
from concurrent.futures import Future

import structlog

from outbound.cancellation import CancellationToken, wait_for_future
from outbound.clock import Clock, MonotonicClock
from outbound.constants import DEFAULT_TOKEN_SAFETY_MARGIN_SECONDS
from outbound.credentials.models import OAuthClientMaterial
from outbound.credentials.provider import CredentialProvider
from outbound.errors import (
    CallCancelledError,
    CredentialConfigError,
    TokenAcquisitionError,
    TransportError,
)
from outbound.observability.metrics import ClientMetrics
from outbound.tokens.endpoint import TokenEndpoint
from outbound.tokens.models import CachedToken


logger = structlog.get_logger()


class TokenCache:
    """Caches OAuth access tokens per credential name.

    A cached token is served while ``now < expires_at - safety_margin``.
    When a new token is needed, exactly one thread performs the
    acquisition for a given credential name; concurrent requesters wait on
    that acquisition and share its token or its failure. Acquisition
    failures are not retried here; they propagate to the caller's retry
    policy.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        endpoint: TokenEndpoint,
        clock: Clock | None = None,
        safety_margin_seconds: float = DEFAULT_TOKEN_SAFETY_MARGIN_SECONDS,
    ) -> None:
        """Initialize the cache.

        Args:
            provider: Resolves credential names to client material.
            endpoint: Performs the client-credentials grant.
            clock: Time source (monotonic seconds).
            safety_margin_seconds: Refresh this long before expiry.
        """
        self._provider = provider
        self._endpoint = endpoint
        self._clock = clock or MonotonicClock()
        self._safety_margin = safety_margin_seconds
        self._lock = threading.Lock()
        self._tokens: dict[str, CachedToken] = {}
        self._inflight: dict[str, Future[CachedToken]] = {}
        self._metrics = ClientMetrics.get_instance()
        self._log = logger.bind(component="token", subcomponent="cache")

    def peek(self, credential_name: str) -> CachedToken | None:
        """Return the cached token without acquiring (may be stale)."""
        with self._lock:
            return self._tokens.get(credential_name)

    def invalidate(
        self,
        credential_name: str,
        stale: CachedToken | None = None,
    ) -> bool:
        """Drop a cached token.

        Args:
            credential_name: Credential whose token to drop.
            stale: If given, drop only if the cached token is this one, so a
                token already refreshed by another caller survives.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            current = self._tokens.get(credential_name)
            if current is None:
                return False
            if stale is not None and current.access_token != stale.access_token:
                return False
            del self._tokens[credential_name]
        self._log.info("token_invalidated", credential=credential_name)
        return True

    def get_token(
        self,
        credential_name: str,
        *,
        force_refresh: bool = False,
        cancel: CancellationToken | None = None,
    ) -> CachedToken:
        """Return a usable access token for a credential.

        Args:
            credential_name: OAuth credential name.
            force_refresh: Ignore any cached token and acquire a new one
                (joins an acquisition already in flight).
            cancel: Optional cancellation token.

        Returns:
            CachedToken valid for at least the safety margin.

        Raises:
            CredentialNotFoundError: If the name is not registered.
            CredentialConfigError: If the credential is not an OAuth credential.
            TokenAcquisitionError: If the token endpoint rejects the request.
            TransportError: If the token endpoint is unreachable.
            CallCancelledError: If cancelled while acquiring or waiting.
        """
        while True:
            with self._lock:
                cached = self._tokens.get(credential_name)
                if (
                    not force_refresh
                    and cached is not None
                    and cached.is_fresh(self._clock.now(), self._safety_margin)
                ):
                    self._metrics.record_token_cache_hit()
                    return cached

                flight = self._inflight.get(credential_name)
                leader = flight is None
                if flight is None:
                    flight = Future()
                    self._inflight[credential_name] = flight

            if leader:
                return self._acquire(credential_name, flight, cancel)

            if not wait_for_future(flight, cancel=cancel):
                raise CallCancelledError(cancel.reason if cancel else "cancelled")
            try:
                return flight.result()
            except CallCancelledError:
                # The leader's own call was cancelled; this caller was not.
                if cancel is not None:
                    cancel.raise_if_cancelled()
                force_refresh = False
                continue

    def _acquire(
        self,
        credential_name: str,
        flight: "Future[CachedToken]",
        cancel: CancellationToken | None,
    ) -> CachedToken:
        """Perform the acquisition as flight leader and publish the outcome."""
        log = self._log.bind(credential=credential_name)
        try:
            material = self._provider.resolve(credential_name)
            if not isinstance(material, OAuthClientMaterial):
                msg = f"Credential '{credential_name}' does not use OAuth client credentials"
                raise CredentialConfigError(msg)

            started = self._clock.now()
            log.debug("token_acquisition_started")
            grant = self._endpoint.acquire(material, cancel=cancel)
            token = CachedToken(
                credential_name=credential_name,
                access_token=grant.access_token,
                expires_at=started + grant.expires_in,
                token_type=grant.token_type,
            )
        except BaseException as e:
            if isinstance(e, (TokenAcquisitionError, TransportError)):
                self._metrics.record_token_acquisition(succeeded=False)
            with self._lock:
                self._inflight.pop(credential_name, None)
            flight.set_exception(e)
            raise

        self._metrics.record_token_acquisition(succeeded=True)
        with self._lock:
            self._tokens[credential_name] = token
            self._inflight.pop(credential_name, None)
        flight.set_result(token)
        log.info("token_cached", expires_in=grant.expires_in)
        return token
