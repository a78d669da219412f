"""
Commands issued over multi-shard connections.
"""
from .command import MultiShardCommand

__all__ = ["MultiShardCommand"]
