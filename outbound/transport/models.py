"""Request and response models for the transport layer."""

import json
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from outbound.constants import JSON_CONTENT_TYPE, is_success_status


class HttpMethod(str, Enum):
    """Supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


HeaderInput = Mapping[str, str] | Iterable[tuple[str, str]]


def merge_headers(*sources: HeaderInput) -> dict[str, str]:
    """Merge header sources with case-insensitive keys, last write wins.

    A header keeps the position of its first occurrence but takes the
    name spelling and value of its last occurrence.

    Args:
        sources: Mappings or (name, value) pairs, applied in order.

    Returns:
        Ordered dictionary of merged headers.
    """
    merged: dict[str, tuple[str, str]] = {}
    for source in sources:
        items = source.items() if isinstance(source, Mapping) else source
        for name, value in items:
            merged[name.lower()] = (name, value)
    return dict(merged.values())


class RequestSpec(BaseModel):
    """A single logical request handed to the client.

    Immutable once built; helpers return modified copies.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: HttpMethod
    url: Annotated[str, Field(min_length=1)]
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes | None = None
    credential_name: str | None = None

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: object) -> object:
        """Accept lower-case method names."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure the URL is absolute http(s)."""
        if not v.lower().startswith(("http://", "https://")):
            msg = f"URL must start with http:// or https://: {v}"
            raise ValueError(msg)
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: object) -> object:
        """Collapse case-insensitive duplicates, last write wins."""
        if v is None:
            return {}
        if isinstance(v, Mapping) or isinstance(v, list | tuple):
            return merge_headers(v)
        return v

    @classmethod
    def with_json(
        cls,
        method: HttpMethod | str,
        url: str,
        payload: Any,
        *,
        headers: HeaderInput | None = None,
        credential_name: str | None = None,
    ) -> "RequestSpec":
        """Build a request carrying a JSON body.

        Args:
            method: HTTP method.
            url: Absolute URL.
            payload: JSON-serializable payload.
            headers: Extra headers.
            credential_name: Credential used to authenticate.

        Returns:
            RequestSpec with ``Content-Type: application/json``.
        """
        return cls(
            method=method,  # type: ignore[arg-type]
            url=url,
            headers=merge_headers({"Content-Type": JSON_CONTENT_TYPE}, headers or {}),
            body=json.dumps(payload).encode("utf-8"),
            credential_name=credential_name,
        )

    def get_header(self, name: str) -> str | None:
        """Look up a header case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def with_headers(self, headers: HeaderInput) -> "RequestSpec":
        """Return a copy with ``headers`` merged over the existing ones."""
        return self.model_copy(update={"headers": merge_headers(self.headers, headers)})


class RawResponse(BaseModel):
    """Response as returned by the transport: status, headers, body."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: int = Field(ge=100, le=599, description="HTTP status code")
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @property
    def is_success(self) -> bool:
        """Check if the status is 2xx."""
        return is_success_status(self.status)

    def get_header(self, name: str) -> str | None:
        """Look up a header case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None
