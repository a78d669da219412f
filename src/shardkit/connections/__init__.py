"""
Connection management for shardkit.

Key components:
- ConnectionStringBuilder: Parses and renders SQL Server connection strings
- MssqlShardConnection: Connection handle for a single shard
- MultiShardConnection: One connection handle per shard, one shared template
"""
from .base import BaseShardConnection, ConnectionState
from .connection_string import (
    ConnectionStringBuilder,
    validate_template,
    with_application_name_suffix,
)
from .constants import MULTI_SHARD_DEFAULTS
from .mssql import MssqlShardConnection
from .shard import Shard, ShardConnectionRecord, ShardLocation
from .manager import MultiShardConnection  # noqa: E402

__all__ = [
    "BaseShardConnection",
    "ConnectionState",
    "ConnectionStringBuilder",
    "MssqlShardConnection",
    "MultiShardConnection",
    "MULTI_SHARD_DEFAULTS",
    "Shard",
    "ShardConnectionRecord",
    "ShardLocation",
    "validate_template",
    "with_application_name_suffix",
]
