"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from hfmcp.crypto.cipher import KeyConfigurationError, decode_key

MCP_PROTOCOL_VERSION = "2025-11-25"

SESSION_SECRET_MIN_LENGTH = 32
ACCESS_TOKEN_TTL_DEFAULT = 3600
REFRESH_TOKEN_TTL_DEFAULT = 90 * 24 * 60 * 60
CREDENTIAL_TTL_DEFAULT = 90 * 24 * 60 * 60
AUTH_CODE_TTL_DEFAULT = 600
CLIENT_METADATA_TIMEOUT_DEFAULT = 5.0
CLIENT_METADATA_CACHE_TTL_DEFAULT = 300
REFERENCE_CACHE_TTL_DEFAULT = 900
PLATFORM_TIMEOUT_DEFAULT = 30.0
PLATFORM_MAX_RETRIES_DEFAULT = 5
DEFAULT_ALLOWED_ORIGINS = "http://localhost:*,https://localhost:*"
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="MCP_DB_")

    url: str = ""
    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "hfmcp"
    password: str = "hfmcp"
    database: str = "hfmcp"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async connection URL, honouring an explicit override."""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class GatewaySettings(BaseSettings):
    """Secrets, OAuth lifetimes and transport policy for the gateway."""

    model_config = SettingsConfigDict(env_prefix="MCP_")

    session_secret: str = ""
    credential_encryption_key: str = ""
    allowed_origins: str = DEFAULT_ALLOWED_ORIGINS
    resource_identifier: str = ""
    access_token_ttl: int = ACCESS_TOKEN_TTL_DEFAULT
    refresh_token_ttl: int = REFRESH_TOKEN_TTL_DEFAULT
    auth_code_ttl: int = AUTH_CODE_TTL_DEFAULT
    credential_ttl: int = CREDENTIAL_TTL_DEFAULT
    client_metadata_timeout: float = CLIENT_METADATA_TIMEOUT_DEFAULT
    client_metadata_cache_ttl: int = CLIENT_METADATA_CACHE_TTL_DEFAULT
    reference_cache_ttl: int = REFERENCE_CACHE_TTL_DEFAULT
    platform_timeout: float = PLATFORM_TIMEOUT_DEFAULT
    platform_max_retries: int = PLATFORM_MAX_RETRIES_DEFAULT

    def get_allowed_origin_list(self) -> list[str]:
        """Parse comma-separated allowed origins."""
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        if not origins:
            return [o.strip() for o in DEFAULT_ALLOWED_ORIGINS.split(",")]
        return origins

    def misconfiguration(self) -> str | None:
        """Return why the secrets are unusable, or None if they are fine.

        The reason is for server logs only.
        """
        if len(self.session_secret) < SESSION_SECRET_MIN_LENGTH:
            return "session secret shorter than 32 characters"
        try:
            decode_key(self.credential_encryption_key)
        except KeyConfigurationError as exc:
            return f"credential encryption key unusable: {exc}"
        return None
