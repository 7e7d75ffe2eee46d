"""HTTP transport layer: request/response models and the executor."""

from outbound.transport.executor import HttpExecutor, classify_connect_error
from outbound.transport.models import HttpMethod, RawResponse, RequestSpec, merge_headers


__all__ = [
    "HttpExecutor",
    "HttpMethod",
    "RawResponse",
    "RequestSpec",
    "classify_connect_error",
    "merge_headers",
]
