"""Unit tests for YAML credential files."""

from pathlib import Path

import pytest

from outbound.credentials.models import CredentialKind
from outbound.credentials.store import YamlCredentialStore, expand_env_references
from outbound.errors import CredentialConfigError


VALID_YAML = """
credentials:
  - name: erp
    kind: oauth_client_credentials
    token_url: https://idp.example.com/oauth2/token
    client_id: erp-integration
    client_secret: ${ERP_CLIENT_SECRET}
    scope: orders.read
  - name: billing
    kind: static_key
    header_name: X-API-Key
    key: ${BILLING_KEY}
  - name: public
    kind: none
"""


def write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "credentials.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestYamlCredentialStore:
    """Tests for YamlCredentialStore."""

    def test_loads_and_expands_env(self, tmp_path: Path) -> None:
        """Test credentials load with ${VAR} references expanded."""
        path = write(tmp_path, VALID_YAML)

        store = YamlCredentialStore(
            path,
            environ={"ERP_CLIENT_SECRET": "erp-secret", "BILLING_KEY": "bill-key"},
        )

        assert store.names() == ["billing", "erp", "public"]
        erp = store.lookup("erp")
        assert erp.kind == CredentialKind.OAUTH_CLIENT_CREDENTIALS
        assert erp.client_secret is not None
        assert erp.client_secret.get_secret_value() == "erp-secret"
        billing = store.lookup("billing")
        assert billing.key is not None
        assert billing.key.get_secret_value() == "bill-key"
        assert store.path == path

    def test_missing_env_var(self, tmp_path: Path) -> None:
        """Test an unset variable is a configuration error."""
        path = write(tmp_path, VALID_YAML)

        with pytest.raises(CredentialConfigError, match="BILLING_KEY"):
            YamlCredentialStore(path, environ={"ERP_CLIENT_SECRET": "x"})

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file is a configuration error."""
        with pytest.raises(CredentialConfigError, match="not found"):
            YamlCredentialStore(tmp_path / "absent.yaml", environ={})

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test malformed YAML is a configuration error."""
        path = write(tmp_path, "credentials: [unclosed")

        with pytest.raises(CredentialConfigError, match="not valid YAML"):
            YamlCredentialStore(path, environ={})

    def test_validation_error_hides_values(self, tmp_path: Path) -> None:
        """Test schema errors do not echo secret values."""
        path = write(
            tmp_path,
            """
credentials:
  - name: erp
    kind: oauth_client_credentials
    client_secret: leaked-secret-value
    token_url: https://idp.example.com/token
""",
        )

        with pytest.raises(CredentialConfigError) as exc_info:
            YamlCredentialStore(path, environ={})

        assert "client_id" in str(exc_info.value)
        assert "leaked-secret-value" not in str(exc_info.value)

    def test_duplicate_names(self, tmp_path: Path) -> None:
        """Test duplicate names are rejected."""
        path = write(
            tmp_path,
            """
credentials:
  - {name: a, kind: none}
  - {name: a, kind: none}
""",
        )

        with pytest.raises(CredentialConfigError, match="Duplicate"):
            YamlCredentialStore(path, environ={})

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file yields an empty store."""
        store = YamlCredentialStore(write(tmp_path, ""), environ={})

        assert store.names() == []


class TestExpandEnvReferences:
    """Tests for expand_env_references."""

    def test_nested(self) -> None:
        """Test references inside nested structures are expanded."""
        value = {"a": ["${X}", {"b": "pre-${X}-post"}], "n": 3}

        assert expand_env_references(value, {"X": "1"}) == {
            "a": ["1", {"b": "pre-1-post"}],
            "n": 3,
        }

    def test_plain_dollar_untouched(self) -> None:
        """Test text without braces is not expanded."""
        assert expand_env_references("$HOME", {"HOME": "/root"}) == "$HOME"
