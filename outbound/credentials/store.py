"""Credential stores.

A store maps names to ``Credential`` definitions. ``lookup`` raises
``KeyError`` for unknown names; the provider turns that into
``CredentialNotFoundError``.
"""

import os
import re
import threading
from pathlib import Path
from typing import Protocol

import structlog
import yaml
from pydantic import ValidationError

from outbound.credentials.models import Credential, CredentialsFile
from outbound.errors import CredentialConfigError


logger = structlog.get_logger()

_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class CredentialStore(Protocol):
    """Read-only source of credential definitions."""

    def lookup(self, name: str) -> Credential:
        """Return the credential registered under ``name``.

        Raises:
            KeyError: If no such credential exists.
        """
        ...


class InMemoryCredentialStore:
    """Credentials registered at configuration time."""

    def __init__(self, credentials: list[Credential] | None = None) -> None:
        self._credentials: dict[str, Credential] = {}
        self._lock = threading.Lock()
        for credential in credentials or []:
            self.register(credential)

    def register(self, credential: Credential) -> None:
        """Register a credential.

        Args:
            credential: Credential definition.

        Raises:
            CredentialConfigError: If the name is already registered.
        """
        with self._lock:
            if credential.name in self._credentials:
                msg = f"Credential already registered: {credential.name}"
                raise CredentialConfigError(msg)
            self._credentials[credential.name] = credential

    def lookup(self, name: str) -> Credential:
        """Return the credential registered under ``name``."""
        with self._lock:
            return self._credentials[name]

    def names(self) -> list[str]:
        """List registered credential names."""
        with self._lock:
            return sorted(self._credentials)


def expand_env_references(value: object, environ: dict[str, str]) -> object:
    """Replace ``${VAR}`` references in strings, recursively.

    Args:
        value: Parsed YAML value.
        environ: Environment mapping.

    Returns:
        Value with references substituted.

    Raises:
        CredentialConfigError: If a referenced variable is not set.
    """
    if isinstance(value, str):

        def _substitute(match: re.Match[str]) -> str:
            var = match.group(1)
            if var not in environ:
                msg = f"Environment variable '{var}' referenced but not set"
                raise CredentialConfigError(msg)
            return environ[var]

        return _ENV_REFERENCE.sub(_substitute, value)
    if isinstance(value, dict):
        return {key: expand_env_references(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_references(item, environ) for item in value]
    return value


class YamlCredentialStore(InMemoryCredentialStore):
    """Credentials loaded from a YAML file.

    Secret values should be written as ``${ENV_VAR}`` references so that
    the file itself can be committed without secrets:

        credentials:
          - name: erp
            kind: oauth_client_credentials
            token_url: https://idp.example.com/oauth2/token
            client_id: erp-integration
            client_secret: ${ERP_CLIENT_SECRET}
            scope: orders.read
    """

    def __init__(self, path: Path, environ: dict[str, str] | None = None) -> None:
        """Load and validate the credentials file.

        Args:
            path: Path to the YAML file.
            environ: Environment used for ``${VAR}`` expansion (os.environ
                if None).

        Raises:
            CredentialConfigError: If the file is missing, malformed, or invalid.
        """
        self._path = path
        log = logger.bind(component="credentials", file_path=str(path))

        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except FileNotFoundError as e:
            msg = f"Credentials file not found: {path}"
            raise CredentialConfigError(msg) from e
        except yaml.YAMLError as e:
            msg = f"Credentials file is not valid YAML: {path}: {e}"
            raise CredentialConfigError(msg) from e

        expanded = expand_env_references(
            raw, dict(os.environ) if environ is None else environ
        )

        try:
            parsed = CredentialsFile.model_validate(expanded)
        except ValidationError as e:
            # Pydantic echoes input values; report locations and messages only.
            details = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            msg = f"Invalid credentials file {path}: {details}"
            raise CredentialConfigError(msg) from None

        super().__init__(parsed.credentials)
        log.info("credentials_loaded", credential_count=len(parsed.credentials))

    @property
    def path(self) -> Path:
        """Get the credentials file path."""
        return self._path
