"""Application settings and configuration.

This module defines all configuration options for Lockinspiel.
Settings are loaded from environment variables (or a `.env` file) with
sensible defaults, once at process start, and handed to the clock client,
the store and the time-sync server.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application metadata
    app_name: str = Field(default="Lockinspiel", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Time reference endpoint used by the clock synchronization client
    base_url: str = Field(default="http://127.0.0.1:8080", alias="BASE_URL")
    sync_timeout_seconds: float | None = Field(default=None, alias="SYNC_TIMEOUT_SECONDS")

    # Authentication service (carried for the front-ends, not used by the core)
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_api_key: str = Field(default="", alias="SUPABASE_API_KEY")
    supabase_jwt_secret: str = Field(default="", alias="SUPABASE_JWT_SECRET")

    # Storage configuration
    database_path: Path | None = Field(default=None, alias="DATABASE_PATH")
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE", ge=1)
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Time-sync server
    server_host: str = Field(default="127.0.0.1", alias="SERVER_HOST")
    server_port: int = Field(default=8080, alias="SERVER_PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )


settings = Settings()
