"""Error taxonomy for the outbound client.

Every error raised to callers derives from ``OutboundError``. Messages
carry status codes and attempt counts but never secret material.
"""

from enum import Enum


class OutboundError(Exception):
    """Base exception for all outbound client errors."""


class CredentialNotFoundError(OutboundError):
    """Raised when a credential name is not registered."""

    def __init__(self, name: str) -> None:
        """Initialize the error with the missing credential name.

        Args:
            name: The credential name that was not found.
        """
        self.name = name
        super().__init__(f"Credential not found: {name}")


class CredentialConfigError(OutboundError):
    """Raised when a credential definition or credentials file is invalid."""


class TokenAcquisitionError(OutboundError):
    """Raised when the token endpoint does not return a usable token.

    Attributes:
        credential_name: Credential whose token was requested.
        status: HTTP status from the token endpoint (0 if not applicable).
        body: Masked, truncated response body.
    """

    def __init__(self, credential_name: str, status: int, body: str) -> None:
        self.credential_name = credential_name
        self.status = status
        self.body = body
        super().__init__(
            f"Token acquisition failed for {credential_name} (status {status})"
        )


class TransportErrorKind(str, Enum):
    """Classification of transport failures.

    - TIMEOUT: Attempt exceeded its timeout (caller or hard limit)
    - CONNECTION_REFUSED: Could not establish a connection
    - TLS_FAILURE: TLS handshake or certificate failure
    - OTHER: DNS failure, protocol error, oversize response, etc.
    """

    TIMEOUT = "TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    TLS_FAILURE = "TLS_FAILURE"
    OTHER = "OTHER"


class TransportError(OutboundError):
    """Raised by the HTTP executor when no response was received."""

    def __init__(self, kind: TransportErrorKind, cause: str) -> None:
        """Initialize the transport error.

        Args:
            kind: Failure classification.
            cause: Human-readable cause.
        """
        self.kind = kind
        self.cause = cause
        super().__init__(f"{kind.value}: {cause}")


class CallCancelledError(OutboundError):
    """Raised when a caller's cancellation signal or deadline fires."""

    def __init__(self, reason: str = "cancelled") -> None:
        self.reason = reason
        super().__init__(f"Call cancelled: {reason}")


class CallFailedError(OutboundError):
    """Raised when a call ends without a successful response.

    Exactly one of ``final_status`` and ``final_error`` is set.

    Attributes:
        final_status: Status code of the last attempt, if a response arrived.
        final_error: Error of the last attempt, if no response arrived.
        attempts: Number of attempts performed.
        correlation_id: Correlation id shared by all attempts.
        response_body: Body of the last response (empty for errors).
    """

    def __init__(
        self,
        *,
        attempts: int,
        correlation_id: str,
        final_status: int | None = None,
        final_error: OutboundError | None = None,
        response_body: bytes = b"",
    ) -> None:
        self.final_status = final_status
        self.final_error = final_error
        self.attempts = attempts
        self.correlation_id = correlation_id
        self.response_body = response_body
        if final_status is not None:
            detail = f"status {final_status}"
        else:
            detail = str(final_error)
        super().__init__(f"Call failed after {attempts} attempt(s): {detail}")
