"""Client settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from outbound.config import ClientConfig
from outbound.constants import (
    DEFAULT_LOG_BODY_MAX_CHARS,
    DEFAULT_TOKEN_SAFETY_MARGIN_SECONDS,
)
from outbound.retry import RetryPolicy


class ClientSettings(BaseSettings):
    """Centralized environment configuration (``OUTBOUND_*`` variables)."""

    model_config = SettingsConfigDict(
        env_prefix="OUTBOUND_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    credentials_file: Path | None = None
    call_log_db: Path | None = None
    user_agent: str = "outbound-rest/1.0"
    timeout_seconds: float = Field(default=30.0, gt=0.0, le=300.0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    base_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    token_safety_margin_seconds: float = Field(
        default=DEFAULT_TOKEN_SAFETY_MARGIN_SECONDS, ge=0.0
    )
    log_body_max_chars: int = Field(default=DEFAULT_LOG_BODY_MAX_CHARS, ge=0)
    log_level: str = "INFO"
    json_logs: bool = True

    def to_client_config(self) -> ClientConfig:
        """Build the client configuration these settings describe."""
        return ClientConfig(
            user_agent=self.user_agent,
            default_timeout_seconds=self.timeout_seconds,
            retry_policy=RetryPolicy(
                max_attempts=self.max_attempts,
                base_delay_seconds=self.base_delay_seconds,
            ),
            token_safety_margin_seconds=self.token_safety_margin_seconds,
            log_body_max_chars=self.log_body_max_chars,
        )


def get_settings() -> ClientSettings:
    """Get a settings instance."""
    return ClientSettings()
