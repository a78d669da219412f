"""
Unit tests for the connection providers.
"""
from unittest.mock import MagicMock

import pytest

from shardkit.connections.connection_string import ConnectionStringBuilder
from shardkit.connections.providers import (
    ConnectionListConnectionProvider,
    ShardListConnectionProvider,
    ShardLocationListConnectionProvider,
    validate_and_copy,
)
from shardkit.connections.shard import ShardLocation
from shardkit.utility.exceptions import ShardArgumentError


@pytest.fixture
def template():
    return ConnectionStringBuilder("User ID=u;Password=p;Connect Timeout=15")


class TestValidateAndCopy:
    def test_none_names_parameter(self):
        with pytest.raises(ShardArgumentError) as exc_info:
            validate_and_copy(None, "shards")

        assert exc_info.value.param_name == "shards"
        assert isinstance(exc_info.value, ValueError)

    def test_empty_names_parameter(self):
        with pytest.raises(ShardArgumentError, match="No shard_locations provided."):
            validate_and_copy([], "shard_locations")

    def test_copy_is_detached_from_source(self):
        source = [1, 2]
        snapshot = validate_and_copy(source, "items")
        source.append(3)

        assert snapshot == (1, 2)

    def test_accepts_generators(self):
        assert validate_and_copy((i for i in range(3)), "items") == (0, 1, 2)


class TestShardListConnectionProvider:
    def test_locations_follow_shards(self, shards, shard_locations, template, connection_factory):
        provider = ShardListConnectionProvider(shards, template, connection_factory)

        assert provider.shards == tuple(shards)
        assert provider.shard_locations == tuple(shard_locations)

    def test_creates_one_unopened_handle_per_shard(self, shards, template, connection_factory):
        provider = ShardListConnectionProvider(shards, template, connection_factory)

        records = provider.create_shard_connections()

        assert [r.location for r in records] == [s.location for s in shards]
        assert [r.connection for r in records] == connection_factory.created
        assert all(conn.open_calls == 0 for conn in connection_factory.created)

    def test_handles_inherit_template_settings(self, shards, template, connection_factory):
        provider = ShardListConnectionProvider(shards, template, connection_factory)

        first, second = provider.create_shard_connections()

        assert first.connection.builder.data_source == "ds1"
        assert first.connection.builder.initial_catalog == "db1"
        assert second.connection.builder.data_source == "ds2"
        assert second.connection.builder.initial_catalog == "db2"
        for record in (first, second):
            assert record.connection.builder.user_id == "u"
            assert record.connection.builder["Connect Timeout"] == "15"
        assert template.data_source is None

    def test_rejects_empty_shards(self, template):
        with pytest.raises(ShardArgumentError, match="No shards provided."):
            ShardListConnectionProvider([], template)


class TestShardLocationListConnectionProvider:
    def test_has_no_shards(self, shard_locations, template, connection_factory):
        provider = ShardLocationListConnectionProvider(
            shard_locations, template, connection_factory
        )

        assert provider.shards is None
        assert provider.shard_locations == tuple(shard_locations)

    def test_duplicate_locations_get_independent_handles(self, template, connection_factory):
        location = ShardLocation(data_source="ds1", database="db1")
        provider = ShardLocationListConnectionProvider(
            [location, location], template, connection_factory
        )

        first, second = provider.create_shard_connections()

        assert first.location == second.location
        assert first.connection is not second.connection

    def test_rejects_none(self, template):
        with pytest.raises(ShardArgumentError) as exc_info:
            ShardLocationListConnectionProvider(None, template)

        assert exc_info.value.param_name == "shard_locations"

    def test_failed_creation_releases_earlier_handles(self, shard_locations, template, connection_factory):
        created = []

        def flaky_factory(connection_string):
            if created:
                raise RuntimeError("driver exploded")
            conn = connection_factory(connection_string)
            created.append(conn)
            return conn

        provider = ShardLocationListConnectionProvider(
            shard_locations, template, flaky_factory
        )

        with pytest.raises(RuntimeError, match="driver exploded"):
            provider.create_shard_connections()

        assert created[0].dispose_calls == 1
        assert created[0].disposed

    def test_release_failure_is_logged_and_original_error_kept(
        self, shard_locations, template, connection_factory
    ):
        created = []

        def flaky_factory(connection_string):
            if created:
                raise RuntimeError("driver exploded")
            conn = connection_factory(connection_string)
            conn.fail_on_dispose = True
            created.append(conn)
            return conn

        provider = ShardLocationListConnectionProvider(
            shard_locations, template, flaky_factory
        )
        provider.logger = MagicMock()

        with pytest.raises(RuntimeError, match="driver exploded"):
            provider.create_shard_connections()

        assert created[0].dispose_calls == 1
        provider.logger.debug.assert_called_once()
        message = provider.logger.debug.call_args[0][0]
        assert "dispose failed" in message
        assert "ds1" in message


class TestConnectionListConnectionProvider:
    def test_passes_handles_through(self, shard_locations, connection_factory):
        pairs = [(loc, connection_factory("x=1")) for loc in shard_locations]
        provider = ConnectionListConnectionProvider(pairs)

        records = provider.create_shard_connections()

        assert provider.shards is None
        assert provider.shard_locations is None
        assert [(r.location, r.connection) for r in records] == pairs
        assert all(r.owned for r in records)

    def test_ownership_flag_applies_to_every_record(self, shard_locations, connection_factory):
        pairs = [(loc, connection_factory("x=1")) for loc in shard_locations]

        records = ConnectionListConnectionProvider(
            pairs, owned=False
        ).create_shard_connections()

        assert not any(r.owned for r in records)
