# ============================================================================
# PLAQUES API CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - Plaques API
# PURPOSE: Table name, CORS allow-list, paging limits and query timeout
# EXPORTS: PlaquesConfig, get_plaques_config, reset_plaques_config
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables
# PATTERNS: Settings Pattern, Singleton via cached function
# ============================================================================

"""
Plaques API Configuration

Environment Variables (all optional):
    - PLAQUES_TABLE: Table holding plaque observations, optionally
      schema-qualified (default: "public.plaques")
    - CORS_ALLOWED_ORIGINS: Comma-separated origins echoed back in
      Access-Control-Allow-Origin
    - CORS_ALLOWED_METHODS: Preflight allow-methods (default: "GET, OPTIONS")
    - CORS_ALLOWED_HEADERS: Preflight allow-headers (default: "Content-Type")
    - CORS_MAX_AGE: Preflight cache lifetime in seconds (default: 3600)
    - PLAQUES_DEFAULT_LIMIT: Default page size for /list (default: 100)
    - PLAQUES_SEARCH_DEFAULT_LIMIT: Default page size for /search (default: 50)
    - PLAQUES_MAX_LIMIT: Largest page size accepted (default: 1000)
    - PLAQUES_QUERY_TIMEOUT: statement_timeout in seconds (default: 30)
    - PLAQUES_TEXT_PLACEHOLDER: Text shown for unrecognized plaques

Database credentials live in the root config module.
"""

import os
import re
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

DEFAULT_ALLOWED_ORIGINS = "https://csp-plaques.web.app,http://localhost:3000,http://localhost:5000"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class PlaquesConfig(BaseModel):
    """Configuration for the plaques endpoints."""

    table_name: str = Field(
        default_factory=lambda: os.getenv("PLAQUES_TABLE", "public.plaques"),
        description="Table holding plaque observations ([schema.]table)"
    )

    # CORS
    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: _split_csv(os.getenv("CORS_ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)),
        description="Origins echoed back in Access-Control-Allow-Origin"
    )
    cors_allowed_methods: str = Field(
        default_factory=lambda: os.getenv("CORS_ALLOWED_METHODS", "GET, OPTIONS")
    )
    cors_allowed_headers: str = Field(
        default_factory=lambda: os.getenv("CORS_ALLOWED_HEADERS", "Content-Type")
    )
    cors_max_age: int = Field(
        default_factory=lambda: int(os.getenv("CORS_MAX_AGE", "3600")),
        ge=0
    )

    # Paging
    default_limit: int = Field(
        default_factory=lambda: int(os.getenv("PLAQUES_DEFAULT_LIMIT", "100")),
        ge=1
    )
    search_default_limit: int = Field(
        default_factory=lambda: int(os.getenv("PLAQUES_SEARCH_DEFAULT_LIMIT", "50")),
        ge=1
    )
    max_limit: int = Field(
        default_factory=lambda: int(os.getenv("PLAQUES_MAX_LIMIT", "1000")),
        ge=1
    )

    query_timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("PLAQUES_QUERY_TIMEOUT", "30")),
        ge=1,
        le=300,
        description="Maximum query execution time in seconds"
    )

    text_placeholder: str = Field(
        default_factory=lambda: os.getenv("PLAQUES_TEXT_PLACEHOLDER", "Unknown text"),
        description="Text returned when a plaque has no recognized text"
    )

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Accept 'table' or 'schema.table' made of plain identifiers."""
        parts = v.split(".")
        if len(parts) > 2 or not all(_IDENTIFIER_RE.match(p) for p in parts):
            raise ValueError(f"PLAQUES_TABLE must be 'table' or 'schema.table', got '{v}'")
        return v

    @property
    def table_parts(self) -> Tuple[str, ...]:
        """Table name split into identifier parts for sql.Identifier."""
        return tuple(self.table_name.split("."))

    def get_connection_string(self) -> str:
        """
        Build the PostgreSQL connection string.

        Delegates to the root config so USE_MANAGED_IDENTITY is honoured.
        """
        from config import get_postgres_connection_string
        return get_postgres_connection_string()

    def clamp_limit(self, limit: Optional[int], default: int) -> int:
        if limit is None:
            return min(default, self.max_limit)
        return min(limit, self.max_limit)


_config_cache: Optional[PlaquesConfig] = None


def get_plaques_config() -> PlaquesConfig:
    """
    Get singleton plaques configuration instance.

    Raises:
        ValidationError: If an environment variable holds an invalid value
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = PlaquesConfig()

    return _config_cache


def reset_plaques_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment."""
    global _config_cache
    _config_cache = None
