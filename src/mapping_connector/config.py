"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads configuration parameters
from environment variables and a `.env` file: logging level, where the CLI
finds mapping documents, HTTP and token-cache timings, and the plugin modules
that register custom transform logic.

The `get_settings` function provides a cached, singleton instance of the
configuration.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict


class Settings(BaseSettings):
    """Defines all connector configuration parameters.

    Values come from environment variables or a `.env` file. Numeric timings
    are validated to be non-negative; the expiry margin must leave a positive
    token lifetime under the default TTL.
    """

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Mapping documents (CLI repository)
    MAPPINGS_DIR: Optional[str] = Field(
        default=None,
        description="Directory of *.json mapping documents loaded by the CLI repository",
    )

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Timeout (seconds) for target API and token endpoint requests"
    )
    DEFAULT_RETRY_DELAY_MS: int = Field(
        default=1000,
        description="Delay between attempts when a mapping's resilience policy sets none",
    )

    # Token cache
    TOKEN_EXPIRY_MARGIN_SECONDS: float = Field(
        default=60.0,
        description="Seconds subtracted from a fetched token's lifetime before it is refreshed",
    )
    DEFAULT_TOKEN_TTL_SECONDS: float = Field(
        default=3600.0,
        description="Token lifetime assumed when a token endpoint omits expires_in",
    )

    # Custom logic plugins. Use Any type to prevent Pydantic Settings JSON
    # decoding; validator converts to list[str]
    TRANSFORM_PLUGINS: Any = Field(
        default_factory=list,
        description=(
            "Comma-separated list of importable module paths that register custom "
            "transform logic at import time. Example: TRANSFORM_PLUGINS=acme.transforms"
        ),
    )

    @field_validator("TRANSFORM_PLUGINS", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated string into list of stripped strings.

        Args:
            v: Input value (string or list)

        Returns:
            List of stripped strings with empty entries removed
        """
        if isinstance(v, list):
            return [s.strip() for s in v if s.strip()]
        if isinstance(v, str):
            if not v.strip():
                return []
            return [s.strip() for s in v.split(",") if s.strip()]
        return []

    @field_validator("MAPPINGS_DIR", mode="before")
    @classmethod
    def blank_dir_is_none(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator(
        "HTTP_TIMEOUT_SECONDS",
        "DEFAULT_RETRY_DELAY_MS",
        "TOKEN_EXPIRY_MARGIN_SECONDS",
        "DEFAULT_TOKEN_TTL_SECONDS",
    )
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def margin_below_ttl(self) -> "Settings":
        if self.TOKEN_EXPIRY_MARGIN_SECONDS >= self.DEFAULT_TOKEN_TTL_SECONDS:
            raise ValueError(
                "TOKEN_EXPIRY_MARGIN_SECONDS must be smaller than DEFAULT_TOKEN_TTL_SECONDS"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the application settings."""
    return Settings()
