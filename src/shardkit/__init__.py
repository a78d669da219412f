"""
Connections to many SQL Server shards that share one set of credentials.
"""
from ._version import __version__
from .connections import (
    ConnectionStringBuilder,
    MssqlShardConnection,
    MultiShardConnection,
    Shard,
    ShardLocation,
)
from .query import MultiShardCommand
from .utility.exceptions import (
    ConfigError,
    ShardArgumentError,
    ShardConnectionError,
    ShardError,
    ShardkitError,
)

__all__ = [
    "__version__",
    "ConnectionStringBuilder",
    "MssqlShardConnection",
    "MultiShardCommand",
    "MultiShardConnection",
    "Shard",
    "ShardLocation",
    # Exceptions
    "ShardkitError",
    "ConfigError",
    "ShardArgumentError",
    "ShardError",
    "ShardConnectionError",
]
