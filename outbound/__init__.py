"""Outbound REST client with credential-backed auth, retries, and call logging.

Typical use:

    from outbound import CallOptions, RequestSpec, create_rest_client

    with create_rest_client() as client:
        result = client.call(
            RequestSpec(method="GET", url="https://api.example.com/orders",
                        credential_name="erp"),
            CallOptions(timeout_seconds=10),
        )
"""

from outbound.cancellation import CancellationToken
from outbound.client import CallOptions, CallResult, RestClient, RetryPolicy
from outbound.errors import (
    CallCancelledError,
    CallFailedError,
    CredentialConfigError,
    CredentialNotFoundError,
    OutboundError,
    TokenAcquisitionError,
    TransportError,
    TransportErrorKind,
)
from outbound.factory import create_rest_client
from outbound.transport import RawResponse, RequestSpec


__all__ = [
    "CallCancelledError",
    "CallFailedError",
    "CallOptions",
    "CallResult",
    "CancellationToken",
    "CredentialConfigError",
    "CredentialNotFoundError",
    "OutboundError",
    "RawResponse",
    "RequestSpec",
    "RestClient",
    "RetryPolicy",
    "TokenAcquisitionError",
    "TransportError",
    "TransportErrorKind",
    "create_rest_client",
]
