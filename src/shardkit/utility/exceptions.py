"""
Custom exceptions for shardkit - clear, actionable error handling.

shardkit uses a small hierarchical exception system. Validation errors are
raised synchronously and always before any shard connection is created, so
a failed construction never leaves handles behind.

Exception Hierarchy:
    ShardkitError (base)
    ├── ConfigError - Connection string or configuration file problems
    ├── ShardArgumentError - Missing or empty arguments (also a ValueError)
    └── ShardError
        └── ShardConnectionError - Transient connectivity errors on a shard

Usage Guidelines:
    - Always use exception chaining (`raise SpecificError(...) from e`) when
      wrapping driver exceptions to preserve the original traceback.
    - Teardown (dispose/close) never raises any of these; failures there are
      only logged.
"""
from typing import Optional


class ShardkitError(Exception):
    """Base exception for all shardkit errors."""

    pass


class ConfigError(ShardkitError):
    """Raised when there's an error in configuration."""

    pass


class ShardArgumentError(ShardkitError, ValueError):
    """A required argument was missing or empty."""

    def __init__(self, message: str, param_name: Optional[str] = None):
        super().__init__(message)
        self.param_name = param_name


class ShardError(ShardkitError):
    """Base exception for errors raised by a single shard connection."""

    pass


class ShardConnectionError(ShardError):
    """Connection error when opening a shard connection."""

    pass
