"""
Configuration Management for KuloSplit

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini receipt analysis configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model to use for receipt extraction"
    )
    max_tokens: int = Field(
        default=4096,
        ge=256,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for a single analysis call"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient service failures"
    )

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Reject blank keys so the failure surfaces at startup."""
        if not v.strip():
            raise ValueError("GEMINI_API_KEY must not be empty")
        return v.strip()


class StorageSettings(BaseSettings):
    """Bill history persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HISTORY_",
        extra="ignore"
    )

    file_path: str = Field(
        default="data/kulosplit_history.json",
        description="Path of the JSON file holding the bill history"
    )
    storage_key: str = Field(
        default="kulosplit_bills",
        min_length=1,
        description="Fixed key under which the history document is stored"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_name: str = Field(
        default="KuloSplit",
        description="Name used in shared summaries"
    )
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )

    # Bill defaults
    default_service_fee_percentage: Decimal = Field(
        default=Decimal("0.05"),
        ge=0,
        le=1,
        description="Fraction of the item total used by the default service fee helper"
    )

    # Currency display
    currency_code: str = Field(
        default="IDR",
        description="ISO currency code shown in summaries"
    )
    currency_symbol: str = Field(
        default="Rp",
        description="Currency symbol used when formatting amounts"
    )
    currency_decimals: int = Field(
        default=0,
        ge=0,
        le=4,
        description="Decimal places shown when formatting amounts"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("gemini", "storage", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
