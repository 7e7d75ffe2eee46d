"""HTTP and client constants.

Centralizes status ranges and defaults shared by the transport, retry,
token, and call-logging layers.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_BAD_GATEWAY = 502
HTTP_STATUS_SERVICE_UNAVAILABLE = 503
HTTP_STATUS_GATEWAY_TIMEOUT = 504

# Statuses retried by default
DEFAULT_RETRY_STATUSES = frozenset(
    {
        HTTP_STATUS_TOO_MANY_REQUESTS,
        HTTP_STATUS_BAD_GATEWAY,
        HTTP_STATUS_SERVICE_UNAVAILABLE,
        HTTP_STATUS_GATEWAY_TIMEOUT,
    }
)

# Response Size Limits
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB

# Chunk size for streaming reads
DEFAULT_CHUNK_SIZE = 8192

# Maximum Retry-After honoured (seconds)
MAX_RETRY_AFTER_SECONDS = 60

# Token cache
DEFAULT_TOKEN_SAFETY_MARGIN_SECONDS = 30.0
DEFAULT_TOKEN_TIMEOUT_SECONDS = 15.0

# Call logging
DEFAULT_LOG_BODY_MAX_CHARS = 4000

# Outbound headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


def is_success_status(status_code: int) -> bool:
    """Check whether a status code is 2xx."""
    return HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX
