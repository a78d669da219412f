"""
Common test fixtures and configuration.

Shard connection handles are replaced with FakeShardConnection so no test
needs a driver, a server or Azure credentials.
"""
import logging
import sys
from pathlib import Path
from typing import List

import pytest
from click.testing import CliRunner

# Add src directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shardkit.connections.base import BaseShardConnection, ConnectionState  # noqa: E402
from shardkit.connections.connection_string import ConnectionStringBuilder  # noqa: E402
from shardkit.connections.shard import Shard, ShardLocation  # noqa: E402


class FakeShardConnection(BaseShardConnection):
    """In-memory shard connection handle that records what happened to it."""

    def __init__(self, connection_string: str, options=None):
        super().__init__(connection_string, options)
        self.builder = ConnectionStringBuilder(connection_string)
        self.open_calls = 0
        self.close_calls = 0
        self.dispose_calls = 0
        self.fail_on_close = False
        self.fail_on_dispose = False

    def open(self) -> None:
        self.open_calls += 1
        self._state = ConnectionState.OPEN

    def close(self) -> None:
        self.close_calls += 1
        if self.fail_on_close:
            raise RuntimeError("close failed")
        self._state = ConnectionState.CLOSED

    def dispose(self) -> None:
        self.dispose_calls += 1
        if self.fail_on_dispose:
            raise RuntimeError("dispose failed")
        super().dispose()


class FakeConnectionFactory:
    """Connection factory that remembers every handle it created."""

    def __init__(self):
        self.created: List[FakeShardConnection] = []

    def __call__(self, connection_string: str) -> FakeShardConnection:
        conn = FakeShardConnection(connection_string)
        self.created.append(conn)
        return conn


@pytest.fixture(autouse=True)
def setup_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)
    yield


@pytest.fixture
def connection_factory():
    """Factory producing FakeShardConnection handles."""
    return FakeConnectionFactory()


@pytest.fixture
def shard_locations():
    """Two distinct shard locations."""
    return [
        ShardLocation(data_source="ds1", database="db1"),
        ShardLocation(data_source="ds2", database="db2"),
    ]


@pytest.fixture
def shards(shard_locations):
    """Shards wrapping the two shard locations."""
    return [
        Shard(location=location, shard_map_name="customers")
        for location in shard_locations
    ]


@pytest.fixture
def credentials():
    """A valid shared connection string."""
    return "User ID=u;Password=p"


@pytest.fixture
def cli_runner():
    """Click test runner."""
    return CliRunner()
