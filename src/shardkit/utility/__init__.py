"""
Utility functions and classes for shardkit.
"""
from .exceptions import (
    ConfigError,
    ShardArgumentError,
    ShardConnectionError,
    ShardError,
    ShardkitError,
)

__all__ = [
    "ShardkitError",
    "ConfigError",
    "ShardArgumentError",
    "ShardError",
    "ShardConnectionError",
]
