"""Settings for the dvid package, read from DVID_* environment variables.

Components take a ``CoreSettings`` at construction; only the defaults reach
for the process-wide instance:

    from dvid.core.config import get_config
    resolver_url = get_config().resolver_url
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    """Core configuration settings for DVID.

    Settings can be configured via environment variables with the DVID_ prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="DVID_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="DVID_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="DVID_LOG_FILE",
    )

    # ==========================================================================
    # RESOLUTION SETTINGS
    # ==========================================================================

    resolver_url: str = Field(
        default="https://dev.uniresolver.io",
        description="Base URL of the universal DID resolver",
        validation_alias="DVID_RESOLVER_URL",
    )
    dns_lifetime: float | None = Field(
        default=None,
        description="Total DNS query lifetime in seconds (None keeps the resolver default)",
        validation_alias="DVID_DNS_LIFETIME",
    )

    # ==========================================================================
    # IDENTITY FRAGMENTS
    # ==========================================================================

    encryption_fragment: str = Field(
        default="encryption",
        description="Fragment of the X25519 key-agreement method",
        validation_alias="DVID_ENCRYPTION_FRAGMENT",
    )
    revocation_fragment: str = Field(
        default="signature-bitmap",
        description="Fragment of the revocation bitmap service",
        validation_alias="DVID_REVOCATION_FRAGMENT",
    )

    # ==========================================================================
    # ENCRYPTION SETTINGS
    # ==========================================================================

    associated_data: str = Field(
        default="associatedData",
        description="Associated data bound into every AES-GCM envelope",
        validation_alias="DVID_ASSOCIATED_DATA",
    )

    @field_validator("encryption_fragment", "revocation_fragment")
    @classmethod
    def _strip_hash(cls, value: str) -> str:
        value = value.lstrip("#")
        if not value:
            raise ValueError("fragment must not be empty")
        return value

    @property
    def associated_data_bytes(self) -> bytes:
        """Associated data as UTF-8 bytes."""
        return self.associated_data.encode("utf-8")


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
