"""
Configuration management for Patent Scout.
Loads environment variables and provides centralized access to client settings.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PatentScoutConfig(BaseSettings):
    """
    Centralized configuration for Patent Scout.
    Loads from environment variables and .env file.
    """

    # === EPO OPS Credentials ===
    epo_client_id: str = Field(default="", alias="EPO_CLIENT_ID")
    epo_client_secret: str = Field(default="", alias="EPO_CLIENT_SECRET")

    # === EPO OPS Endpoints ===
    epo_ops_base_url: str = Field(
        default="https://ops.epo.org/3.2/rest-services",
        alias="EPO_OPS_BASE_URL",
    )
    epo_ops_auth_url: str = Field(
        default="https://ops.epo.org/3.2/auth/accesstoken",
        alias="EPO_OPS_AUTH_URL",
    )
    epo_request_timeout_seconds: float = Field(
        default=30.0,
        alias="EPO_REQUEST_TIMEOUT_SECONDS",
    )

    # === Token Cache ===
    token_refresh_skew_seconds: int = Field(default=30, alias="TOKEN_REFRESH_SKEW_SECONDS")

    # === Search & Enrichment ===
    default_search_range: str = Field(default="1-25", alias="DEFAULT_SEARCH_RANGE")
    enrichment_delay_seconds: float = Field(default=0.4, alias="ENRICHMENT_DELAY_SECONDS")
    search_retry_attempts: int = Field(default=1, alias="SEARCH_RETRY_ATTEMPTS")

    # === Presentation ===
    abstract_preview_chars: int = Field(default=200, alias="ABSTRACT_PREVIEW_CHARS")

    # === Application Configuration ===
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_epo_configured(self) -> bool:
        """Check if EPO OPS client credentials are configured."""
        return bool(self.epo_client_id and self.epo_client_secret)

    @property
    def epo_search_url(self) -> str:
        """OPS published-data search endpoint."""
        return f"{self.epo_ops_base_url.rstrip('/')}/published-data/search"


# Singleton instance
_config: PatentScoutConfig | None = None


def get_config() -> PatentScoutConfig:
    """
    Get the application configuration singleton.
    Initializes on first call.
    """
    global _config
    if _config is None:
        _config = PatentScoutConfig()
    return _config


def reload_config() -> PatentScoutConfig:
    """Force reload of configuration from environment."""
    global _config
    _config = PatentScoutConfig()
    return _config
