"""Loader settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        AGE_LOADER_DB_HOST: Database host (default: localhost)
        AGE_LOADER_DB_PORT: Database port (default: 5432)
        AGE_LOADER_DB_DATABASE: Database name (default: postgres)
        AGE_LOADER_DB_USERNAME: Database user (default: postgres)
        AGE_LOADER_DB_PASSWORD: Database password (required in production)
        AGE_LOADER_DB_GRAPH_NAME: Default AGE graph name (default: graph)
        AGE_LOADER_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 1)
        AGE_LOADER_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
        AGE_LOADER_DB_POOL_ENABLED: Enable connection pooling (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="AGE_LOADER_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="postgres", description="Database name")
    username: str = Field(default="postgres", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    graph_name: str = Field(
        default="graph",
        description="Name of the AGE graph loads target by default",
    )
    pool_min_connections: int = Field(
        default=1,
        description="Minimum connections in pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )
    pool_enabled: bool = Field(
        default=True,
        description="Create the connection pool eagerly",
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class LoaderSettings(BaseSettings):
    """Bulk loader defaults.

    Environment variables:
        AGE_LOADER_DEFAULT_BATCH_SIZE: Records per staged batch (default: 1000)
        AGE_LOADER_STAGING_SCHEMA: Schema holding the staging table (default: age_loader)
        AGE_LOADER_STAGING_TABLE: Staging table name (default: staged_params)
        AGE_LOADER_VALIDATE_BEFORE_LOAD: Validate records before loading (default: true)
        AGE_LOADER_CONTINUE_ON_ERROR: Skip failing records/batches (default: false)
        AGE_LOADER_TRANSACTION_TIMEOUT_SECONDS: Transaction deadline (default: none)
        AGE_LOADER_CLEANUP_STAGING: Purge staged data after a load (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="AGE_LOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_batch_size: int = Field(
        default=1000,
        description="Number of records staged and created per statement",
        gt=0,
        le=100_000,
    )
    staging_schema: str = Field(
        default="age_loader",
        description="Schema that holds the staging table and retrieval function",
        pattern=r"^[a-z_][a-z0-9_]*$",
        max_length=63,
    )
    staging_table: str = Field(
        default="staged_params",
        description="Name of the key/value staging table",
        pattern=r"^[a-z_][a-z0-9_]*$",
        max_length=63,
    )
    validate_before_load: bool = Field(
        default=True,
        description="Validate records against the schema before loading",
    )
    continue_on_error: bool = Field(
        default=False,
        description="Skip failing records and batches instead of aborting",
    )
    transaction_timeout_seconds: float | None = Field(
        default=None,
        description="Deadline for the whole load transaction",
        gt=0,
    )
    cleanup_staging: bool = Field(
        default=True,
        description="Purge the load's staging entries once it finishes",
    )


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="age-bulk-loader", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def loader(self) -> LoaderSettings:
        """Get loader settings."""
        return get_loader_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_loader_settings() -> LoaderSettings:
    """Get cached loader settings."""
    return LoaderSettings()
