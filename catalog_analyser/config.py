"""Configuration management for catalog-analyser."""

from dataclasses import replace
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from catalog_analyser.dialects import DialectDescriptor, get_dialect


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="CATALOG_ANALYSER_")

    # PostgreSQL connection configuration
    postgres_dsn: str = ""
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "postgres"
    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_ssl: bool = False

    # Pool and query configuration
    pool_min_size: int = 1
    pool_max_size: int = 4
    query_timeout: int = 30
    max_concurrent_queries: int = Field(default=4, ge=1)

    # Analyser configuration
    dialect: str = "postgres"
    default_schema: Optional[str] = Field(
        default=None,
        description="Overrides the dialect's default schema for object ids without one"
    )

    # Observability configuration
    log_level: str = "INFO"
    metrics_enabled: bool = True
    metrics_window_seconds: int = 300

    # MCP configuration
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8989

    def get_dsn(self) -> str:
        """Get the database connection string.

        Returns:
            The DSN string for connecting to PostgreSQL.
        """
        if self.postgres_dsn and not self.postgres_dsn.startswith("${"):
            return self.postgres_dsn
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_database}"
        )

    def get_dialect(self) -> DialectDescriptor:
        """Resolve the configured dialect, applying the default schema override.

        Raises:
            UnknownDialectError: If the dialect name is not registered.
        """
        dialect = get_dialect(self.dialect)
        if self.default_schema and self.default_schema != dialect.default_schema:
            return replace(dialect, default_schema=self.default_schema)
        return dialect
