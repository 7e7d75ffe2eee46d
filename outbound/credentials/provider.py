"""Credential provider: names to auth material."""

import structlog

from outbound.credentials.models import (
    AuthMaterial,
    CredentialKind,
    NoAuthMaterial,
    OAuthClientMaterial,
    StaticKeyMaterial,
)
from outbound.credentials.store import CredentialStore
from outbound.errors import CredentialNotFoundError


logger = structlog.get_logger()


class CredentialProvider:
    """Resolves named credentials to usable auth material."""

    def __init__(self, store: CredentialStore) -> None:
        """Initialize the provider.

        Args:
            store: Credential store to read from.
        """
        self._store = store
        self._log = logger.bind(component="credentials")

    def resolve(self, name: str) -> AuthMaterial:
        """Resolve a credential name.

        Args:
            name: Credential name.

        Returns:
            StaticKeyMaterial, OAuthClientMaterial, or NoAuthMaterial.

        Raises:
            CredentialNotFoundError: If the name is not registered.
        """
        try:
            credential = self._store.lookup(name)
        except KeyError:
            self._log.warning("credential_not_found", credential=name)
            raise CredentialNotFoundError(name) from None

        if credential.kind == CredentialKind.STATIC_KEY:
            # Validated on construction: key is present for static_key.
            assert credential.key is not None  # noqa: S101
            return StaticKeyMaterial(
                credential_name=name,
                header_name=credential.header_name,
                header_value=credential.key,
            )

        if credential.kind == CredentialKind.OAUTH_CLIENT_CREDENTIALS:
            assert credential.client_id is not None  # noqa: S101
            assert credential.client_secret is not None  # noqa: S101
            assert credential.token_url is not None  # noqa: S101
            return OAuthClientMaterial(
                credential_name=name,
                client_id=credential.client_id,
                client_secret=credential.client_secret,
                token_url=credential.token_url,
                scope=credential.scope,
            )

        return NoAuthMaterial(credential_name=name)
