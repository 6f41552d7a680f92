"""
Configuration module for the Gemini Proxy.

This module uses Pydantic Settings to load and validate environment variables
for the upstream Gemini API, logging, CORS and server binding.

Environment variables are loaded from .env file or system environment.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The upstream API key is the only value the proxy cannot work without;
    everything else has a sensible default.
    """

    # =========================================================================
    # Upstream Gemini API Configuration
    # =========================================================================

    GEMINI_API_KEY: Optional[str] = Field(
        None,
        description="Google Generative Language API key injected into every upstream call",
    )

    GEMINI_API_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the Generative Language API (without trailing slash)",
        min_length=1,
    )

    UPSTREAM_TIMEOUT_SECONDS: Optional[float] = Field(
        None,
        description="Timeout for upstream calls in seconds (unset = wait indefinitely)",
        gt=0,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the proxy server",
    )

    PORT: int = Field(
        default=8080,
        description="Port to bind the proxy server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # CORS Configuration
    # =========================================================================

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def api_key_configured(self) -> bool:
        return bool(self.GEMINI_API_KEY)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("GEMINI_API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended with a single '/'."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid base URL: '{v}'. Expected an http:// or https:// URL"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate LOG_LEVEL is a standard logging level name.

        Args:
            v: Log level string (any case)

        Returns:
            Upper-cased log level

        Raises:
            ValueError: If the level is not recognised
        """
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        v = v.strip().upper()
        if v not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return v


# =============================================================================
# Settings Access
# =============================================================================

def get_settings() -> Settings:
    """
    Build a Settings instance from the current environment.

    Not cached: the API key is resolved on every invocation so a rotated
    key is picked up without restarting the process.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If an environment variable is present but invalid.

    Example:
        >>> from gemini_proxy.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.GEMINI_API_BASE_URL)
    """
    return Settings()


def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Called during application startup so a missing key shows up in the
    logs before the first request fails.

    Returns:
        Dictionary with validation status and any warnings.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    if not settings.GEMINI_API_KEY:
        errors.append("GEMINI_API_KEY is not set")

    if settings.UPSTREAM_TIMEOUT_SECONDS is None:
        warnings.append("UPSTREAM_TIMEOUT_SECONDS is not set (upstream calls never time out)")

    if not settings.GEMINI_API_BASE_URL.startswith("https://"):
        warnings.append("GEMINI_API_BASE_URL is not HTTPS (API key sent in clear text)")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
    }


if __name__ == "__main__":
    """
    Run this module directly to validate your .env configuration:
        python -m gemini_proxy.config
    """
    print("=" * 80)
    print("GEMINI PROXY CONFIGURATION")
    print("=" * 80)

    try:
        config = get_settings()

        print("\n✓ Configuration loaded successfully!\n")

        print("Upstream Configuration:")
        print(f"  Base URL:       {config.GEMINI_API_BASE_URL}")
        print(f"  API key set:    {config.api_key_configured}")
        print(f"  Timeout:        {config.UPSTREAM_TIMEOUT_SECONDS or 'none'}")

        print("\nServer Configuration:")
        print(f"  Host:           {config.HOST}")
        print(f"  Port:           {config.PORT}")
        print(f"  Log level:      {config.LOG_LEVEL}")

        if config.allowed_origins_list:
            print("\nCORS Configuration:")
            print(f"  Allowed Origins: {', '.join(config.allowed_origins_list)}")

        status = validate_configuration(config)

        print("\n" + "=" * 80)
        if status["valid"]:
            print("✓ All critical checks passed!")
        else:
            print("✗ Configuration errors found:")
            for error in status["errors"]:
                print(f"  - {error}")

        if status["warnings"]:
            print("\n⚠ Warnings:")
            for warning in status["warnings"]:
                print(f"  - {warning}")

    except Exception as e:
        print(f"\n✗ Configuration error: {e}")
