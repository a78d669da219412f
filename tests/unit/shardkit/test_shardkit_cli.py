"""
Tests for the shardkit CLI.

Shard handles are mostly replaced by the fake factory from conftest, so
`check` never reaches a server.
"""
import sys
from unittest.mock import MagicMock, patch

import pytest
import yaml

from shardkit.cli import load_shards_file, shardkit
from shardkit.utility.exceptions import ConfigError, ShardError


@pytest.fixture
def shards_file(tmp_path):
    """A shards file with two locations."""
    path = tmp_path / "shards.yml"
    path.write_text(
        yaml.safe_dump(
            {
                "shards": [
                    {"data_source": "ds1", "database": "db1"},
                    {"data_source": "ds2", "database": "db2"},
                ]
            }
        )
    )
    return path


@pytest.fixture
def fake_connections(connection_factory):
    """Make every manager built by the CLI use fake handles."""
    with patch(
        "shardkit.connections.providers.MssqlShardConnection", connection_factory
    ):
        yield connection_factory


class TestLoadShardsFile:
    def test_loads_locations(self, shards_file):
        config = load_shards_file(shards_file)

        assert config.shard_map is None
        assert [s.data_source for s in config.shards] == ["ds1", "ds2"]

    def test_rejects_non_mapping(self, tmp_path):
        path = tmp_path / "shards.yml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_shards_file(path)

    def test_rejects_bad_entries(self, tmp_path):
        path = tmp_path / "shards.yml"
        path.write_text("shards:\n  - data_source: ds1\n")

        with pytest.raises(ConfigError, match="Invalid shards file"):
            load_shards_file(path)

    def test_rejects_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Could not read"):
            load_shards_file(tmp_path / "missing.yml")


class TestShow:
    def test_prints_masked_connection_per_shard(self, cli_runner, shards_file, fake_connections):
        result = cli_runner.invoke(
            shardkit, ["show", str(shards_file), "-c", "User ID=u;Password=secret"]
        )

        assert result.exit_code == 0
        assert "2 shard(s)" in result.output
        assert "[DataSource=ds1 Database=db1]" in result.output
        assert "Data Source=ds2;Initial Catalog=db2" in result.output
        assert "Password=****" in result.output
        assert "secret" not in result.output
        assert all(c.disposed for c in fake_connections.created)

    def test_connection_string_from_environment(self, cli_runner, shards_file, fake_connections):
        result = cli_runner.invoke(
            shardkit,
            ["show", str(shards_file)],
            env={"SHARDKIT_CONNECTION_STRING": "User ID=u;Password=p"},
        )

        assert result.exit_code == 0
        assert len(fake_connections.created) == 2

    def test_labels_shards_with_shard_map(self, cli_runner, tmp_path, fake_connections):
        path = tmp_path / "shards.yml"
        path.write_text(
            "shard_map: customers\nshards:\n  - {data_source: ds1, database: db1}\n"
        )

        result = cli_runner.invoke(shardkit, ["show", str(path), "-c", "User ID=u"])

        assert result.exit_code == 0
        assert "customers[DataSource=ds1 Database=db1]" in result.output

    def test_server_in_connection_string_fails(self, cli_runner, shards_file, fake_connections):
        result = cli_runner.invoke(
            shardkit, ["show", str(shards_file), "-c", "Server=srv;User ID=u"]
        )

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert fake_connections.created == []

    def test_empty_shard_list_fails(self, cli_runner, tmp_path, fake_connections):
        path = tmp_path / "shards.yml"
        path.write_text("shards: []\n")

        result = cli_runner.invoke(shardkit, ["show", str(path), "-c", "User ID=u"])

        assert result.exit_code == 1
        assert "No shard_locations provided." in result.output


class TestCheck:
    def test_all_reachable(self, cli_runner, shards_file, fake_connections):
        result = cli_runner.invoke(
            shardkit, ["check", str(shards_file), "-c", "User ID=u;Password=p"]
        )

        assert result.exit_code == 0
        assert result.output.count("  OK      [") == 2
        assert all(c.open_calls == 1 for c in fake_connections.created)
        assert all(c.disposed for c in fake_connections.created)

    def test_reports_failed_shards(self, cli_runner, shards_file, connection_factory):
        def factory(connection_string):
            conn = connection_factory(connection_string)
            if conn.builder.data_source == "ds2":
                conn.open = MagicMock(side_effect=ShardError("Login failed"))
            return conn

        with patch("shardkit.connections.providers.MssqlShardConnection", factory):
            result = cli_runner.invoke(
                shardkit, ["check", str(shards_file), "-c", "User ID=u;Password=p"]
            )

        assert result.exit_code == 1
        assert "OK      [DataSource=ds1 Database=db1]" in result.output
        assert "FAILED  [DataSource=ds2 Database=db2]: Login failed" in result.output
        assert all(c.disposed for c in connection_factory.created)

    def test_missing_driver_library_reported_as_failed(self, cli_runner, shards_file):
        # Real handles: the driver import itself fails on open
        with patch.dict(sys.modules, {"pyodbc": None}):
            result = cli_runner.invoke(
                shardkit, ["check", str(shards_file), "-c", "User ID=u;Password=p"]
            )

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "FAILED  [DataSource=ds1 Database=db1]" in result.output
        assert "FAILED  [DataSource=ds2 Database=db2]" in result.output
        assert "pyodbc could not be loaded" in result.output


def test_version(cli_runner):
    result = cli_runner.invoke(shardkit, ["--version"])

    assert result.exit_code == 0
