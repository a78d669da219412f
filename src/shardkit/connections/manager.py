"""
Multi-shard connection management.

MultiShardConnection creates one connection handle per shard from a single
shared connection string and governs the lifetime of those handles.

Construction is all-or-nothing: the connection string and the shard
collection are validated before any handle exists. Teardown is
best-effort: a handle that fails to close never stops the others, and
neither ``close()`` nor ``dispose()`` raises.

This class is NOT thread-safe.
"""
from typing import Any, Iterable, Optional, Tuple

from shardkit.messages import get_logger
from shardkit.query.command import MultiShardCommand
from shardkit.utility.exceptions import ShardArgumentError

from .base import ConnectionState
from .connection_string import (
    ConnectionStringBuilder,
    validate_template,
    with_application_name_suffix,
)
from .constants import MULTI_SHARD_DEFAULTS
from .providers import (
    BaseConnectionProvider,
    ConnectionFactory,
    ConnectionListConnectionProvider,
    ShardListConnectionProvider,
    ShardLocationListConnectionProvider,
    release_connection,
)
from .shard import Shard, ShardConnectionRecord, ShardLocation


def build_template(
    connection_string: Optional[str], application_name_suffix: Optional[str] = None
) -> ConnectionStringBuilder:
    """
    Turn the caller's connection string into a validated shard template.

    The application name gets the telemetry suffix and Multiple Active
    Result Sets are switched off, since they are not supported when
    processing at the shards.

    Raises:
        ShardArgumentError: If connection_string is None or
            application_name_suffix is empty
        ConfigError: If the string is malformed or names a server/database
    """
    if connection_string is None:
        raise ShardArgumentError(
            "connection_string must not be None", param_name="connection_string"
        )

    if application_name_suffix is None:
        suffix = MULTI_SHARD_DEFAULTS.application_name_suffix
    elif not application_name_suffix:
        raise ShardArgumentError(
            "application_name_suffix must not be empty",
            param_name="application_name_suffix",
        )
    else:
        suffix = application_name_suffix

    template = with_application_name_suffix(
        ConnectionStringBuilder(connection_string), suffix
    )
    validate_template(template)
    template.multiple_active_result_sets = False
    return template


class MultiShardConnection:
    """
    A connection to a set of shards.

    The same credentials are used on all shards, so every shard needs to
    grant them the permissions the commands require. Handles are created
    eagerly but not opened; the execution engine opens them on first use.

    Example:
        ```python
        locations = [ShardLocation(data_source="ds1", database="db1"),
                     ShardLocation(data_source="ds2", database="db2")]

        with MultiShardConnection.from_locations(
            locations, "User ID=u;Password=p"
        ) as conn:
            cmd = conn.create_command()
            cmd.command_text = "SELECT 1"
            ...
        # every handle is disposed here, even if the block raised
        ```
    """

    def __init__(
        self,
        provider: BaseConnectionProvider,
        command_timeout: Optional[int] = None,
    ):
        """
        Initialize from a connection provider.

        Prefer the ``from_shards``, ``from_locations`` and
        ``from_connections`` constructors.

        Args:
            provider: Supplies the shards and creates their connections
            command_timeout: Default timeout for commands created by
                ``create_command()``
        """
        self._provider = provider
        self.command_timeout = (
            MULTI_SHARD_DEFAULTS.command_timeout
            if command_timeout is None
            else command_timeout
        )
        self._disposed = False
        self.logger = get_logger("shardkit.connections.manager")

        self._shard_connections: Tuple[ShardConnectionRecord, ...] = tuple(
            provider.create_shard_connections()
        )
        self.logger.debug(
            f"Created connections for {len(self._shard_connections)} shard(s)"
        )

    @classmethod
    def from_shards(
        cls,
        shards: Iterable[Shard],
        connection_string: str,
        *,
        application_name_suffix: Optional[str] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        command_timeout: Optional[int] = None,
    ) -> "MultiShardConnection":
        """
        Connect to a collection of shards.

        Args:
            shards: Shards to connect to; copied, so later changes to the
                caller's collection have no effect
            connection_string: Shared credentials and settings; must not
                set Data Source or Initial Catalog
            application_name_suffix: Telemetry suffix for Application Name
                (default: ``ESC_MSQv<version>``)
            connection_factory: Creates a handle from a shard connection
                string (default: MssqlShardConnection)
            command_timeout: Default timeout for created commands

        Raises:
            ShardArgumentError: If connection_string or shards is None,
                or shards is empty
            ConfigError: If the connection string is invalid as a template
        """
        template = build_template(connection_string, application_name_suffix)
        provider = ShardListConnectionProvider(shards, template, connection_factory)
        return cls(provider, command_timeout=command_timeout)

    @classmethod
    def from_locations(
        cls,
        shard_locations: Iterable[ShardLocation],
        connection_string: str,
        *,
        application_name_suffix: Optional[str] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        command_timeout: Optional[int] = None,
    ) -> "MultiShardConnection":
        """
        Connect to a collection of shard locations.

        Same contract as ``from_shards``; ``shards`` will be None.
        """
        template = build_template(connection_string, application_name_suffix)
        provider = ShardLocationListConnectionProvider(
            shard_locations, template, connection_factory
        )
        return cls(provider, command_timeout=command_timeout)

    @classmethod
    def from_connections(
        cls,
        shard_connections: Iterable[Tuple[ShardLocation, Any]],
        *,
        owned: bool = True,
        command_timeout: Optional[int] = None,
    ) -> "MultiShardConnection":
        """
        Wrap connections that already exist.

        No connection string validation takes place and no handles are
        created. Both ``shards`` and ``shard_locations`` will be None.

        Args:
            shard_connections: (location, handle) pairs
            owned: Whether ``dispose()`` releases these handles. Pass False
                when the caller keeps ownership.
            command_timeout: Default timeout for created commands
        """
        provider = ConnectionListConnectionProvider(shard_connections, owned=owned)
        return cls(provider, command_timeout=command_timeout)

    @property
    def shards(self) -> Optional[Tuple[Shard, ...]]:
        """The shards, or None when the connection was not built from shards."""
        return self._provider.shards

    @property
    def shard_locations(self) -> Optional[Tuple[ShardLocation, ...]]:
        """The shard locations, or None when built from existing connections."""
        return self._provider.shard_locations

    @property
    def shard_connections(self) -> Tuple[ShardConnectionRecord, ...]:
        return self._shard_connections

    @property
    def disposed(self) -> bool:
        return self._disposed

    def create_command(self) -> MultiShardCommand:
        """
        Create a command bound to this connection.

        Returns:
            MultiShardCommand with ``command_text`` set to None
        """
        return MultiShardCommand.create(
            self, command_text=None, command_timeout=self.command_timeout
        )

    def close(self) -> None:
        """
        Close any open connections to shards.

        Best-effort and repeatable: failures are logged and swallowed, and
        the connection stays usable (handles can be reopened).
        """
        for record in self._shard_connections:
            conn = record.connection
            if conn is None or getattr(conn, "state", None) == ConnectionState.CLOSED:
                continue
            try:
                conn.close()
            except Exception as e:
                self.logger.debug(
                    f"Ignoring error closing connection to {record.location}: {str(e)}"
                )

    def dispose(self) -> None:
        """
        Release all owned connection handles.

        Runs once; later calls do nothing. A handle that fails to dispose
        is logged and skipped.
        """
        if self._disposed:
            return

        for record in self._shard_connections:
            if record.connection is None or not record.owned:
                continue
            try:
                release_connection(record.connection)
            except Exception as e:
                self.logger.warning(
                    f"Error disposing connection to {record.location}: {str(e)}"
                )

        self._disposed = True
        self.logger.debug("Connection was disposed")

    def __enter__(self) -> "MultiShardConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def __len__(self) -> int:
        return len(self._shard_connections)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "live"
        return f"MultiShardConnection(shards={len(self)}, state={state})"
