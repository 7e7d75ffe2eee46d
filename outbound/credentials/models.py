"""Credential definitions and resolved auth material."""

from enum import Enum
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)


class CredentialKind(str, Enum):
    """How a credential authenticates outbound calls."""

    NONE = "none"
    STATIC_KEY = "static_key"
    OAUTH_CLIENT_CREDENTIALS = "oauth_client_credentials"


class Credential(BaseModel):
    """A named credential.

    Secret material is held as ``SecretStr`` so that ``repr()`` and
    ``model_dump()`` never expose it.

    - static_key: ``key`` is sent verbatim as the value of ``header_name``
      (e.g. ``Bearer abc`` in Authorization, or a raw key in X-API-Key).
    - oauth_client_credentials: ``client_id``/``client_secret`` are exchanged
      at ``token_url`` for a bearer token.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Annotated[str, Field(min_length=1, max_length=200)]
    kind: CredentialKind
    header_name: Annotated[str, Field(min_length=1)] = "Authorization"
    key: SecretStr | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    token_url: str | None = None
    scope: str | None = None

    @field_validator("token_url")
    @classmethod
    def validate_token_url(cls, v: str | None) -> str | None:
        """Ensure the token endpoint is an absolute http(s) URL."""
        if v is not None and not v.lower().startswith(("http://", "https://")):
            msg = f"token_url must be an http(s) URL: {v}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_material(self) -> "Credential":
        """Check that the material required by ``kind`` is present."""
        if self.kind == CredentialKind.STATIC_KEY and not (
            self.key and self.key.get_secret_value()
        ):
            msg = f"Credential '{self.name}': static_key requires 'key'"
            raise ValueError(msg)
        if self.kind == CredentialKind.OAUTH_CLIENT_CREDENTIALS:
            missing = [
                field
                for field, value in (
                    ("client_id", self.client_id),
                    ("client_secret", self.client_secret),
                    ("token_url", self.token_url),
                )
                if not value
            ]
            if missing:
                msg = (
                    f"Credential '{self.name}': oauth_client_credentials "
                    f"requires {', '.join(missing)}"
                )
                raise ValueError(msg)
        return self


class CredentialsFile(BaseModel):
    """Schema of a credentials YAML file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    credentials: list[Credential] = Field(default_factory=list)

    @field_validator("credentials")
    @classmethod
    def validate_unique_names(cls, v: list[Credential]) -> list[Credential]:
        """Reject duplicate credential names."""
        seen: set[str] = set()
        for credential in v:
            if credential.name in seen:
                msg = f"Duplicate credential name: {credential.name}"
                raise ValueError(msg)
            seen.add(credential.name)
        return v


class NoAuthMaterial(BaseModel):
    """Material for credentials that send no auth header."""

    model_config = ConfigDict(frozen=True)

    credential_name: str


class StaticKeyMaterial(BaseModel):
    """A ready-to-send header."""

    model_config = ConfigDict(frozen=True)

    credential_name: str
    header_name: str
    header_value: SecretStr


class OAuthClientMaterial(BaseModel):
    """Client-credentials grant inputs; consumed by the token cache only."""

    model_config = ConfigDict(frozen=True)

    credential_name: str
    client_id: str
    client_secret: SecretStr
    token_url: str
    scope: str | None = None


AuthMaterial = NoAuthMaterial | StaticKeyMaterial | OAuthClientMaterial
