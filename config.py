# ============================================================================
# APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: PostgreSQL connection settings with managed identity support
# EXPORTS: AppConfig, get_app_config, get_postgres_connection_string
# DEPENDENCIES: pydantic-settings, azure-identity
# SOURCE: Environment variables, .env file, Azure managed identity
# PATTERNS: Singleton config, lazy credential acquisition
# ============================================================================

"""
Application Configuration Module

Centralized database configuration for the plaques API:
- PostgreSQL connection string generation
- Password or managed identity authentication
- Environment-based configuration with validation

Authentication Modes:
    1. Password-based (local development):
       - Requires: POSTGRES_HOST, POSTGRES_DATABASE, POSTGRES_USER, POSTGRES_PASSWORD
       - Use when: USE_MANAGED_IDENTITY=false or not set

    2. Managed Identity (Azure production):
       - Requires: System-assigned managed identity enabled
       - Use when: USE_MANAGED_IDENTITY=true

Nothing here runs at import time. The connection string is built on first
use so the Function App can start (and answer CORS preflight) without a
database configured.

Usage:
    from config import get_postgres_connection_string

    conn = psycopg.connect(get_postgres_connection_string())
"""

import logging
from typing import Optional
from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Scope for Azure Database for PostgreSQL AAD tokens
POSTGRES_AAD_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


# ============================================================================
# Application Configuration
# ============================================================================

class AppConfig(BaseSettings):
    """
    Application-wide configuration loaded from environment variables.

    Attributes:
        postgres_host: PostgreSQL server hostname
        postgres_port: PostgreSQL server port
        postgres_database: Database name
        postgres_user: Database username
        postgres_password: Database password (optional with managed identity)
        postgres_sslmode: libpq sslmode
        use_managed_identity: Enable Azure managed identity authentication
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    use_managed_identity: bool = Field(
        default=False,
        description="Use Azure managed identity for authentication"
    )

    postgres_host: str = Field(..., description="PostgreSQL hostname")
    postgres_port: int = Field(default=5432, description="PostgreSQL port")
    postgres_database: str = Field(..., description="Database name")
    postgres_user: str = Field(..., description="Database username")
    postgres_password: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Database password"
    )
    postgres_sslmode: str = Field(default="require", description="libpq sslmode")

    @field_validator("postgres_password")
    @classmethod
    def validate_password(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Ensure password is provided when not using managed identity."""
        if not info.data.get("use_managed_identity", False) and not v:
            raise ValueError(
                "POSTGRES_PASSWORD is required when USE_MANAGED_IDENTITY=false"
            )
        return v

    @property
    def auth_mode(self) -> str:
        return "managed_identity" if self.use_managed_identity else "password"


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Get singleton application configuration instance.

    Raises:
        ValidationError: If required environment variables are missing
    """
    return AppConfig()


# ============================================================================
# PostgreSQL Connection String Generation
# ============================================================================

def get_postgres_connection_string() -> str:
    """
    Generate PostgreSQL connection string based on authentication mode.

    Returns:
        str: PostgreSQL connection string (libpq URI format)

    Raises:
        ValueError: If required configuration is missing
        RuntimeError: If managed identity token acquisition fails
    """
    config = get_app_config()

    if config.use_managed_identity:
        password = _acquire_managed_identity_token(config)
    else:
        password = config.postgres_password

    return _build_connection_string(config, password)


def _build_connection_string(config: AppConfig, password: str) -> str:
    """
    Build the connection URI.

    Password is URL-encoded to handle special characters like @ symbols.
    """
    logger.info(f"Building {config.auth_mode} connection string for {config.postgres_host}")

    return (
        f"postgresql://{quote_plus(config.postgres_user)}:{quote_plus(password)}"
        f"@{config.postgres_host}:{config.postgres_port}"
        f"/{config.postgres_database}"
        f"?sslmode={config.postgres_sslmode}"
    )


def _acquire_managed_identity_token(config: AppConfig) -> str:
    """
    Acquire an Azure AD access token to use as the database password.

    Tokens live about an hour, so this is called per connection string
    build rather than cached.
    """
    from azure.identity import DefaultAzureCredential

    logger.info(f"Acquiring managed identity token for {config.postgres_host}")

    try:
        credential = DefaultAzureCredential()
        token = credential.get_token(POSTGRES_AAD_SCOPE)
    except Exception as e:
        logger.error(f"Failed to acquire managed identity token: {e}")
        raise RuntimeError(
            f"Managed identity authentication failed: {e}. "
            "Ensure system-assigned managed identity is enabled and has database permissions."
        ) from e

    logger.info("✅ Successfully acquired managed identity token")
    return token.token


# ============================================================================
# Configuration Validation
# ============================================================================

def validate_configuration() -> bool:
    """
    Validate configuration on application startup.

    Raises:
        Exception: If configuration validation fails
    """
    try:
        config = get_app_config()
        logger.info("Configuration validation:")
        logger.info(f"  PostgreSQL Host: {config.postgres_host}")
        logger.info(f"  PostgreSQL Port: {config.postgres_port}")
        logger.info(f"  Database: {config.postgres_database}")
        logger.info(f"  User: {config.postgres_user}")
        logger.info(f"  Auth mode: {config.auth_mode}")

        get_postgres_connection_string()
        logger.info("✅ Connection string generated successfully")

        return True

    except Exception as e:
        logger.error(f"❌ Configuration validation failed: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    validate_configuration()
