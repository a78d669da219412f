"""
Connection providers for MultiShardConnection.

A provider turns what the caller handed to the manager (shards, shard
locations or ready-made connections) into the ordered list of
ShardConnectionRecords the manager owns.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from shardkit.messages import get_logger
from shardkit.utility.exceptions import ShardArgumentError

from .connection_string import ConnectionStringBuilder
from .mssql import MssqlShardConnection
from .shard import Shard, ShardConnectionRecord, ShardLocation

ConnectionFactory = Callable[[str], Any]

T = TypeVar("T")


def validate_and_copy(collection: Optional[Iterable[T]], name: str) -> Tuple[T, ...]:
    """
    Snapshot a caller-supplied collection into a tuple.

    Raises:
        ShardArgumentError: If the collection is None or empty
    """
    if collection is None:
        raise ShardArgumentError(f"{name} must not be None", param_name=name)

    snapshot = tuple(collection)
    if not snapshot:
        raise ShardArgumentError(f"No {name} provided.", param_name=name)

    return snapshot


def create_connection_for_location(
    location: ShardLocation,
    template: ConnectionStringBuilder,
    connection_factory: ConnectionFactory,
) -> ShardConnectionRecord:
    """Create an unopened handle for one shard from the shared template."""
    shard_builder = template.copy(
        data_source=location.data_source,
        initial_catalog=location.database,
    )
    return ShardConnectionRecord(
        location=location,
        connection=connection_factory(shard_builder.connection_string),
    )


def release_connection(conn: Any) -> None:
    """Dispose a handle, falling back to close() for plain DB-API connections."""
    dispose = getattr(conn, "dispose", None)
    if callable(dispose):
        dispose()
    else:
        conn.close()


class BaseConnectionProvider(ABC):
    """Abstract provider of shards and shard connections."""

    @property
    @abstractmethod
    def shards(self) -> Optional[Tuple[Shard, ...]]:
        """The shards, or None when no Shard objects were supplied."""
        pass

    @property
    @abstractmethod
    def shard_locations(self) -> Optional[Tuple[ShardLocation, ...]]:
        """The shard locations, or None when they are not known."""
        pass

    @abstractmethod
    def create_shard_connections(self) -> List[ShardConnectionRecord]:
        """Create one record per shard, in input order."""
        pass


class _TemplateConnectionProvider(BaseConnectionProvider):
    """Shared behavior for providers that build handles from a template."""

    def __init__(
        self,
        template: ConnectionStringBuilder,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        self._template = template
        self._connection_factory = connection_factory or MssqlShardConnection
        self.logger = get_logger("shardkit.connections.providers")

    def create_shard_connections(self) -> List[ShardConnectionRecord]:
        records: List[ShardConnectionRecord] = []
        try:
            for location in self.shard_locations:
                records.append(
                    create_connection_for_location(
                        location, self._template, self._connection_factory
                    )
                )
        except Exception:
            # Release whatever was created before the failure
            for record in records:
                try:
                    release_connection(record.connection)
                except Exception as e:
                    self.logger.debug(
                        f"Ignoring error releasing connection to "
                        f"{record.location}: {str(e)}"
                    )
            raise
        return records


class ShardListConnectionProvider(_TemplateConnectionProvider):
    """Connection provider based on a list of shards."""

    def __init__(
        self,
        shards: Sequence[Shard],
        template: ConnectionStringBuilder,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        super().__init__(template, connection_factory)
        self._shards = validate_and_copy(shards, "shards")

    @property
    def shards(self) -> Optional[Tuple[Shard, ...]]:
        return self._shards

    @property
    def shard_locations(self) -> Optional[Tuple[ShardLocation, ...]]:
        return tuple(shard.location for shard in self._shards)


class ShardLocationListConnectionProvider(_TemplateConnectionProvider):
    """Connection provider based on a list of shard locations."""

    def __init__(
        self,
        shard_locations: Sequence[ShardLocation],
        template: ConnectionStringBuilder,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        super().__init__(template, connection_factory)
        self._locations = validate_and_copy(shard_locations, "shard_locations")

    @property
    def shards(self) -> Optional[Tuple[Shard, ...]]:
        return None

    @property
    def shard_locations(self) -> Optional[Tuple[ShardLocation, ...]]:
        return self._locations


class ConnectionListConnectionProvider(BaseConnectionProvider):
    """
    Connection provider based on already created connections.

    Used by tests and by callers that manage handles themselves. Handles
    are passed through untouched; ``owned`` decides whether the manager
    releases them on disposal.
    """

    def __init__(
        self,
        shard_connections: Iterable[Tuple[ShardLocation, Any]],
        owned: bool = True,
    ):
        self._connections = validate_and_copy(shard_connections, "shard_connections")
        self._owned = owned

    @property
    def shards(self) -> Optional[Tuple[Shard, ...]]:
        return None

    @property
    def shard_locations(self) -> Optional[Tuple[ShardLocation, ...]]:
        return None

    def create_shard_connections(self) -> List[ShardConnectionRecord]:
        return [
            ShardConnectionRecord(location=location, connection=conn, owned=self._owned)
            for location, conn in self._connections
        ]
