"""Settings for shopreferral.

Values come from environment variables or a .env file and are validated
with pydantic: store location, activity log backend, the products option
name and the store time zone used to date referral discounts.
"""

from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Store and hook settings read from the environment (or .env)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Store configuration
    store_sqlite_path: str = Field(
        default="./data/shopreferral.db",
        description="SQLite database file path for options and order metadata",
    )
    store_pool_size: int = Field(
        default=5,
        description="Connections kept open per SQLite store",
    )

    # Activity log configuration
    activity_log_backend: Literal["logging", "sqlite"] = Field(
        default="logging",
        description="Activity log backend type",
    )

    # Coupon gate configuration
    products_config_option: str = Field(
        default="products_config",
        description="Option holding the products that disable coupons",
    )

    # Referral pricing configuration
    timezone: str = Field(
        default="Europe/Paris",
        description="Store time zone used to date the discount window",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging",
    )

    @field_validator("store_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Ensure pool size is positive."""
        if v <= 0:
            raise ValueError("store_pool_size must be positive")
        return v

    @field_validator("products_config_option")
    @classmethod
    def validate_option_name(cls, v: str) -> str:
        """Ensure the option name is not blank."""
        if not v.strip():
            raise ValueError("products_config_option must be a non-empty string")
        return v.strip()

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the time zone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Read and validate settings.

    Args:
        env_file: .env file to read instead of ./.env.

    Raises:
        ValidationError: If a value fails validation.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
