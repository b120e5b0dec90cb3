"""Configuration management with pydantic-settings for Campaign Sync.

- pydantic-settings for type-safe configuration
- Automatic .env file loading with environment taking precedence
- Validation with clear error messages
- SecretStr for credentials
- Frozen config (immutable after load)

Every option is overridable through the environment; nothing sensitive has
a usable default.
"""

import logging
from functools import lru_cache
from urllib.parse import quote

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("campaign_sync.config")

__all__ = ["SyncConfig", "get_config", "reset_config"]


class SyncConfig(BaseSettings):
    """Configuration for a campaign sync run.

    Loads from (in order of precedence):
    1. Environment variables (highest priority)
    2. .env file in the working directory
    3. Default values (lowest priority)

    Attributes:
        api_base_url: Ad Platform API root (AD_PLATFORM_API_URL)
        api_prefix: Path prefix for campaign endpoints (default: /api)
        api_username: Username for the Basic Auth token exchange
        api_password: Password for the Basic Auth token exchange
        min_request_interval_ms: Minimum gap between outbound calls
        request_timeout_ms: Per-call timeout
        max_retries: Retry ceiling for 5xx, timeouts and network errors
        backoff_base_ms: Base delay for 5xx/network backoff
        rate_limit_backoff_base_ms: Base delay for 429 backoff without Retry-After
        max_backoff_ms: Upper bound for any single backoff wait
        backoff_jitter: Add up to one second of random jitter to backoff
        token_default_lifetime_s: Token lifetime assumed when the server omits expires_in
        token_safety_margin_s: Seconds subtracted from token lifetime
        page_limit: Records requested per page
        db_host, db_port, db_name, db_user, db_password: Postgres connection
        db_pool_max_size: Connection pool size
        db_connect_timeout_s: Seconds to wait for the pool to become ready
        use_mock_api: Serve the API from the in-process mock
        use_mock_db: Persist to the in-memory sink
        mock_campaign_count: Campaigns generated by the mock API
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format (json for production, text for development)
        pushgateway_enabled: Push run metrics to a Prometheus Pushgateway
        pushgateway_url: Pushgateway address
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    # Ad Platform API
    api_base_url: str = Field(
        default="http://localhost:3001",
        validation_alias=AliasChoices("AD_PLATFORM_API_URL", "api_base_url"),
        description="Ad Platform API base URL",
    )

    api_prefix: str = Field(
        default="/api",
        description="Path prefix for campaign endpoints",
    )

    api_username: str = Field(default="", description="API username (Basic Auth)")

    api_password: SecretStr = Field(
        default=SecretStr(""),
        description="API password (Basic Auth, stored securely)",
    )

    # Request pipeline
    min_request_interval_ms: int = Field(
        default=6500,
        ge=0,
        description="Minimum milliseconds between requests (10 req/min quota plus buffer)",
    )

    request_timeout_ms: int = Field(
        default=10000, ge=100, description="Per-request timeout in milliseconds"
    )

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retry ceiling for server errors, timeouts and network errors",
    )

    backoff_base_ms: int = Field(
        default=1000, ge=0, description="Base backoff for server/network errors"
    )

    rate_limit_backoff_base_ms: int = Field(
        default=2000,
        ge=0,
        description="Base backoff for 429 responses without Retry-After",
    )

    max_backoff_ms: int = Field(
        default=60000, ge=0, description="Maximum single backoff wait"
    )

    backoff_jitter: bool = Field(
        default=False, description="Add random jitter to backoff waits"
    )

    token_default_lifetime_s: int = Field(
        default=3600,
        ge=1,
        description="Token lifetime used when the auth response omits expires_in",
    )

    token_safety_margin_s: int = Field(
        default=30, ge=0, description="Refresh tokens this many seconds early"
    )

    page_limit: int = Field(
        default=10, ge=1, le=1000, description="Campaigns requested per page"
    )

    # Database
    db_host: str = Field(default="localhost", description="Postgres hostname")
    db_port: int = Field(default=5432, ge=1, le=65535, description="Postgres port")
    db_name: str = Field(default="mixoads", description="Postgres database")
    db_user: str = Field(default="postgres", description="Postgres user")
    db_password: SecretStr = Field(
        default=SecretStr(""), description="Postgres password"
    )
    db_pool_max_size: int = Field(
        default=10, ge=1, le=100, description="Maximum pooled connections"
    )
    db_connect_timeout_s: float = Field(
        default=10.0, gt=0, description="Seconds to wait for the pool to open"
    )

    # Mock mode
    use_mock_api: bool = Field(
        default=False, description="Use the in-process mock Ad Platform API"
    )
    use_mock_db: bool = Field(
        default=False, description="Use the in-memory campaign sink"
    )
    mock_campaign_count: int = Field(
        default=25, ge=0, description="Campaigns served by the mock API"
    )

    # Logging & Monitoring
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    log_format: str = Field(
        default="json",
        pattern="^(json|text)$",
        description="Log format: json (production), text (development)",
    )

    pushgateway_enabled: bool = Field(
        default=False, description="Push run metrics to Prometheus Pushgateway"
    )
    pushgateway_url: str = Field(
        default="localhost:9091", description="Pushgateway host:port"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        """Accept lowercase level names from the environment."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("api_base_url")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        """Drop trailing slashes so paths can be appended verbatim."""
        return v.rstrip("/")

    @field_validator("api_prefix")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        """Normalize prefix to a leading slash and no trailing slash."""
        v = v.strip().strip("/")
        return f"/{v}" if v else ""

    @model_validator(mode="after")
    def validate_api_credentials(self) -> "SyncConfig":
        """Require API credentials unless the mock API is in use."""
        if not self.use_mock_api:
            if not self.api_username:
                raise ValueError("API_USERNAME required when USE_MOCK_API=false")
            if not self.api_password.get_secret_value():
                raise ValueError("API_PASSWORD required when USE_MOCK_API=false")
        return self

    def get_db_conninfo(self) -> str:
        """Build a libpq connection string for psycopg."""
        password = self.db_password.get_secret_value()
        auth = quote(self.db_user, safe="")
        if password:
            auth += ":" + quote(password, safe="")
        return f"postgresql://{auth}@{self.db_host}:{self.db_port}/{quote(self.db_name, safe='')}"


@lru_cache(maxsize=1)
def get_config() -> SyncConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return SyncConfig()


def reset_config() -> None:
    """Reset configuration singleton for testing."""
    get_config.cache_clear()
