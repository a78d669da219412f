"""
Commands bound to a multi-shard connection.

A MultiShardCommand only carries the command text and settings; running
it across the shards is the job of the execution engine that consumes it.
"""
from typing import TYPE_CHECKING, Optional

from shardkit.connections.constants import MULTI_SHARD_DEFAULTS

if TYPE_CHECKING:
    from shardkit.connections.manager import MultiShardConnection


class MultiShardCommand:
    """A command to run against every shard of a MultiShardConnection."""

    def __init__(
        self,
        connection: "MultiShardConnection",
        command_text: Optional[str] = None,
        command_timeout: Optional[int] = None,
    ):
        self.connection = connection
        self.command_text = command_text
        self.command_timeout = (
            MULTI_SHARD_DEFAULTS.command_timeout
            if command_timeout is None
            else command_timeout
        )

    @classmethod
    def create(
        cls,
        connection: "MultiShardConnection",
        command_text: Optional[str] = None,
        command_timeout: Optional[int] = None,
    ) -> "MultiShardCommand":
        return cls(connection, command_text, command_timeout)

    def __repr__(self) -> str:
        return (
            f"MultiShardCommand(command_text={self.command_text!r}, "
            f"shards={len(self.connection)})"
        )
