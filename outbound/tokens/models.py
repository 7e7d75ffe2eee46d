"""Token models."""

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class TokenGrant(BaseModel):
    """Parsed token endpoint response."""

    model_config = ConfigDict(frozen=True)

    access_token: SecretStr
    expires_in: int = Field(ge=0)
    token_type: str = "Bearer"


class CachedToken(BaseModel):
    """An access token cached for a credential until ``expires_at``.

    ``expires_at`` is on the token cache's clock (monotonic seconds).
    """

    model_config = ConfigDict(frozen=True)

    credential_name: str
    access_token: SecretStr
    expires_at: float
    token_type: str = "Bearer"

    def is_fresh(self, now: float, safety_margin_seconds: float) -> bool:
        """Check whether the token can still be used.

        Args:
            now: Current time on the cache clock.
            safety_margin_seconds: Refresh this long before expiry.

        Returns:
            True if ``now < expires_at - safety_margin_seconds``.
        """
        return now < self.expires_at - safety_margin_seconds

    def authorization_value(self) -> str:
        """Value for the Authorization header."""
        return f"Bearer {self.access_token.get_secret_value()}"
