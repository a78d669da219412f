"""
Shared constants and default configurations for shard connections.

Defaults are pydantic models so they are validated once and can be
overridden per manager or per handle without touching global state.
"""

from pydantic import BaseModel, Field

from shardkit._version import __version__

APPLICATION_NAME_PREFIX = "ESC_MSQv"


class MssqlConnectionDefaults(BaseModel):
    """Default MSSQL connection configuration."""

    driver: str = Field(
        default="ODBC Driver 18 for SQL Server",
        description="ODBC driver name for SQL Server connections",
    )
    encrypt: str = Field(
        default="Yes", description="Enable encryption for SQL Server connections"
    )
    trust_cert: str = Field(
        default="Yes", description="Trust server certificate for SQL Server connections"
    )
    timeout: int = Field(default=30, ge=1, description="Connection timeout in seconds")


class MultiShardDefaults(BaseModel):
    """Default multi-shard connection configuration."""

    application_name_suffix: str = Field(
        default=f"{APPLICATION_NAME_PREFIX}{__version__}",
        min_length=1,
        description="Appended to every shard's Application Name for telemetry",
    )
    command_timeout: int = Field(
        default=300,
        ge=0,
        description="Default timeout in seconds for commands created by a manager",
    )


# Singleton instances for easy access
MSSQL_CONNECTION_DEFAULTS = MssqlConnectionDefaults()
MULTI_SHARD_DEFAULTS = MultiShardDefaults()
