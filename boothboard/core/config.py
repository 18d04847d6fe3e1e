"""
Application configuration settings
Handles environment variables and configuration management
All configuration values should be set in .env file or environment variables
Reference: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""
from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from boothboard.core.exceptions import ConfigError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    Uses pydantic BaseSettings for validation and type conversion

    STORE_URL and STORE_ANON_KEY have no defaults: a missing value is fatal
    """
    PROJECT_NAME: str = "Booth Board"
    VERSION: str = "0.1.0"

    # Entity store connection
    # Base URL of the Supabase-style project, e.g. https://xyz.supabase.co
    STORE_URL: str = Field(
        ...,
        min_length=1,
        description="Entity store endpoint URL. Must be set via environment variable."
    )
    # Public (anon) API key sent with every request
    STORE_ANON_KEY: str = Field(
        ...,
        min_length=1,
        description="Entity store public API key. Must be set via environment variable."
    )

    # Insert the profile from the client after sign-up in case the store has
    # no trigger creating it. The insert tolerates an existing row.
    PROFILE_FALLBACK_INSERT: bool = True

    # Seconds before an HTTP request to the store is abandoned
    HTTP_TIMEOUT: float = 10.0

    LOG_LEVEL: str = "INFO"

    # Pydantic v2 configuration
    # Reference: https://docs.pydantic.dev/latest/api/pydantic_settings/
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def rest_url(self) -> str:
        return f"{self.STORE_URL.rstrip('/')}/rest/v1"

    @property
    def auth_url(self) -> str:
        return f"{self.STORE_URL.rstrip('/')}/auth/v1"


@lru_cache()
def get_settings() -> Settings:
    """
    Get the singleton Settings instance.

    Raises:
        ConfigError: If a required variable is missing or invalid
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise ConfigError(
            f"Missing or invalid store configuration: {missing}. "
            "Set STORE_URL and STORE_ANON_KEY in your environment or .env file."
        ) from e
