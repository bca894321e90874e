"""
Shared configuration management for the token verification SDK.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SdkSettings(BaseSettings):
    """Environment-driven SDK settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="SDK_ENV")
    log_level: str = Field(default="info", validation_alias="SDK_LOG_LEVEL")

    # Project discovery
    project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT"),
    )

    # Local emulation; when set, ID tokens and session cookies are accepted unsigned
    auth_emulator_host: Optional[str] = Field(default=None, validation_alias="AUTH_EMULATOR_HOST")

    # Key source HTTP
    http_timeout: float = Field(default=10.0, validation_alias="SDK_HTTP_TIMEOUT")
    http_proxy: Optional[str] = Field(default=None, validation_alias="SDK_HTTP_PROXY")
    jwks_cache_ttl: int = Field(default=6 * 60 * 60, validation_alias="SDK_JWKS_CACHE_TTL")

    # Circuit breaker for key sources
    key_fetch_failure_threshold: int = Field(default=5, validation_alias="SDK_KEY_FETCH_FAILURE_THRESHOLD")
    key_fetch_recovery_timeout: float = Field(default=30.0, validation_alias="SDK_KEY_FETCH_RECOVERY_TIMEOUT")

    @property
    def emulator_enabled(self) -> bool:
        return bool(self.auth_emulator_host)


def get_settings(**overrides) -> SdkSettings:
    """Build settings from the current environment."""
    return SdkSettings(**overrides)
