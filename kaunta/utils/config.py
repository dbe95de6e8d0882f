# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="PG_")

    host: str = Field(default="localhost", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="kaunta", description="PostgreSQL username")
    password: str = Field(default="", description="PostgreSQL password")
    database: str = Field(default="kaunta", description="Database name")
    schema_name: str = Field(default="kaunta", description="Schema name")
    sslmode: str = Field(default="prefer", description="SSL mode")

    # Pool and query limits
    pool_min: int = Field(default=1, description="Minimum pooled connections")
    pool_max: int = Field(default=10, description="Maximum pooled connections")
    query_timeout_seconds: int = Field(
        default=30, description="statement_timeout applied to every query"
    )

    @property
    def connection_string(self) -> str:
        """Build PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?sslmode={self.sslmode}"
        )


class IdentitySettings(BaseSettings):
    """Visitor identity rotation settings."""

    model_config = SettingsConfigDict(env_prefix="IDENTITY_")

    rotation_period: str = Field(
        default="day",
        description="Session salt rotation bucket (hour, day, month; anything else is day)",
    )


class GeoIPSettings(BaseSettings):
    """GeoIP database settings."""

    model_config = SettingsConfigDict(env_prefix="GEOIP_")

    database_path: Optional[Path] = Field(
        default=Path("data/GeoLite2-City.mmdb"),
        description="Path to a MaxMind GeoLite2-City database",
    )


class LiveSettings(BaseSettings):
    """Live snapshot polling settings."""

    model_config = SettingsConfigDict(env_prefix="LIVE_")

    interval_seconds: int = Field(default=5, description="Polling interval (2-60 seconds)")
    max_duration_hours: int = Field(
        default=24, description="Upper bound on the lifetime of one live session"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    geoip: GeoIPSettings = Field(default_factory=GeoIPSettings)
    live: LiveSettings = Field(default_factory=LiveSettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
