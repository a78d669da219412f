"""
Message utilities for shardkit.
"""
from shardkit.messages.logger import ShardkitLogger, get_logger

__all__ = ["ShardkitLogger", "get_logger"]
