"""Migration configuration loaded from environment variables.

All configuration is via environment variables (or a local .env file).
Credentials for Airtable and the target database are never hardcoded.
"""

from functools import lru_cache

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Migration settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Empathy Ledger Migration")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Target database
    database_url: PostgresDsn = Field(
        ...,
        description="PostgreSQL connection string for the target store",
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, description="Threshold for slow query warnings (ms)"
    )
    db_connect_timeout: int = Field(
        default=60, description="Connection timeout in seconds"
    )
    db_command_timeout: int = Field(
        default=60, description="Command timeout in seconds"
    )

    # Airtable source
    airtable_api_key: str = Field(
        ...,
        description="Airtable personal access token",
    )
    airtable_base_id: str = Field(
        ...,
        description="Airtable base holding the source tables",
    )
    airtable_api_url: str = Field(
        default="https://api.airtable.com",
        description="Airtable API base URL",
    )
    airtable_page_size: int = Field(
        default=100, description="Records per page (Airtable maximum is 100)"
    )
    airtable_timeout: float = Field(
        default=30.0, description="Airtable request timeout in seconds"
    )
    airtable_max_retries: int = Field(
        default=3, description="Maximum retry attempts for Airtable requests"
    )
    airtable_retry_delay: float = Field(
        default=1.0, description="Base delay between retries in seconds"
    )
    # Circuit breaker settings for Airtable
    airtable_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    airtable_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # Source table names
    airtable_organizations_table: str = Field(default="Organizations")
    airtable_communities_table: str = Field(default="Communities")
    airtable_stories_table: str = Field(default="Stories")

    # Migration run
    migration_log_dir: str = Field(
        default="migration-logs",
        description="Directory for per-run log, error log and stats artifacts",
    )
    global_community_slug: str = Field(
        default="global",
        description="Slug of the pre-existing community every story is assigned to",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="text", description="Log format: json or text")


@lru_cache
def get_settings() -> Settings:
    """Get cached migration settings."""
    return Settings()  # type: ignore[call-arg]
