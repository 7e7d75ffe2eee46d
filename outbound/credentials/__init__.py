"""Credential definitions, stores, and the credential provider."""

from outbound.credentials.models import (
    AuthMaterial,
    Credential,
    CredentialKind,
    CredentialsFile,
    NoAuthMaterial,
    OAuthClientMaterial,
    StaticKeyMaterial,
)
from outbound.credentials.provider import CredentialProvider
from outbound.credentials.store import (
    CredentialStore,
    InMemoryCredentialStore,
    YamlCredentialStore,
    expand_env_references,
)


__all__ = [
    "AuthMaterial",
    "Credential",
    "CredentialKind",
    "CredentialProvider",
    "CredentialStore",
    "CredentialsFile",
    "InMemoryCredentialStore",
    "NoAuthMaterial",
    "OAuthClientMaterial",
    "StaticKeyMaterial",
    "YamlCredentialStore",
    "expand_env_references",
]
