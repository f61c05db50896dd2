"""Configuration using pydantic-settings.

Values come from EXTRABASE_* environment variables or a local .env file.
The service account path also honours GOOGLE_APPLICATION_CREDENTIALS.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from extrabase.database import DEFAULT_HOST, DEFAULT_TIMEOUT


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    Environment variables:
    - EXTRABASE_PROJECT_ID: Database name (e.g. "my-app-default-rtdb")
    - EXTRABASE_CREDENTIALS_PATH or GOOGLE_APPLICATION_CREDENTIALS:
      Service account JSON key
    - EXTRABASE_ACCESS_TOKEN: Pre-resolved token, used instead of the key
    """

    model_config = SettingsConfigDict(
        env_prefix="EXTRABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    project_id: str = ""
    credentials_path: str = Field(
        default="",
        validation_alias=AliasChoices(
            "EXTRABASE_CREDENTIALS_PATH", "GOOGLE_APPLICATION_CREDENTIALS"
        ),
    )
    access_token: str = ""

    host: str = DEFAULT_HOST
    timeout: float = DEFAULT_TIMEOUT
    # Disables keep-alive; some load balancers drop idle pooled connections
    connection_close: bool = False

    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("host")
    @classmethod
    def strip_host(cls, v: str) -> str:
        return v.strip().strip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
