#!/usr/bin/env python3
"""
shardkit CLI - inspect and check multi-shard connections.

Shards are listed in a YAML file:

    shard_map: customers        # optional
    shards:
      - data_source: tcp:shard1.database.windows.net
        database: customers_0
      - data_source: tcp:shard2.database.windows.net
        database: customers_1
"""

import sys
from pathlib import Path
from typing import List, Optional

import click
import yaml
from pydantic import BaseModel, Field, ValidationError

from shardkit._version import __version__
from shardkit.connections import MultiShardConnection, Shard, ShardLocation
from shardkit.messages import get_logger
from shardkit.utility.exceptions import ConfigError, ShardArgumentError, ShardError


class ShardsFile(BaseModel):
    """Contents of a shards YAML file."""

    shard_map: Optional[str] = Field(
        default=None, description="Shard map name; when set, shards are built"
    )
    shards: List[ShardLocation] = Field(default_factory=list)


def load_shards_file(path: Path) -> ShardsFile:
    """
    Load and validate a shards YAML file.

    Raises:
        ConfigError: If the file cannot be read or is not a valid shards file
    """
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read shards file {path}: {str(e)}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Shards file {path} must contain a mapping")

    try:
        return ShardsFile(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid shards file {path}: {str(e)}") from e


def _connect(shards_file: Path, connection_string: str) -> MultiShardConnection:
    config = load_shards_file(shards_file)
    if config.shard_map:
        shards = [
            Shard(location=location, shard_map_name=config.shard_map)
            for location in config.shards
        ]
        return MultiShardConnection.from_shards(shards, connection_string)
    return MultiShardConnection.from_locations(config.shards, connection_string)


def _describe(connection) -> str:
    builder = getattr(connection, "builder", None)
    if builder is not None:
        return builder.masked()
    return repr(connection)


connection_string_option = click.option(
    "--connection-string",
    "-c",
    envvar="SHARDKIT_CONNECTION_STRING",
    required=True,
    help="Shared credentials, without server or database "
    "(env: SHARDKIT_CONNECTION_STRING)",
)


@click.group()
@click.version_option(version=__version__)
def shardkit():
    """
    shardkit - connections to many SQL Server shards

    One set of credentials, one connection per shard.
    """
    pass


@shardkit.command()
@click.argument("shards_file", type=click.Path(exists=True, path_type=Path))
@connection_string_option
def show(shards_file: Path, connection_string: str):
    """Show the effective connection string for every shard.

    SHARDS_FILE: YAML file listing the shards
    """
    try:
        with _connect(shards_file, connection_string) as conn:
            click.echo(f"{len(conn)} shard(s)")
            labels = conn.shards or conn.shard_locations
            for label, record in zip(labels, conn.shard_connections):
                click.echo(f"  {label}  {_describe(record.connection)}")
    except (ConfigError, ShardArgumentError) as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)


@shardkit.command()
@click.argument("shards_file", type=click.Path(exists=True, path_type=Path))
@connection_string_option
def check(shards_file: Path, connection_string: str):
    """Open a connection to every shard and report which ones fail.

    SHARDS_FILE: YAML file listing the shards
    """
    logger = get_logger("shardkit.cli.check")

    try:
        conn = _connect(shards_file, connection_string)
    except (ConfigError, ShardArgumentError) as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)

    failed = 0
    with conn:
        logger.start(f"Checking {len(conn)} shard(s)")
        for record in conn.shard_connections:
            try:
                record.connection.open()
                click.echo(f"  OK      {record.location}")
            except ShardError as e:
                failed += 1
                click.echo(f"  FAILED  {record.location}: {e}")
        conn.close()

    if failed:
        logger.error(f"{failed} of {len(conn)} shard(s) failed")
        sys.exit(1)

    logger.success(f"All {len(conn)} shard(s) reachable")


def main():
    """Entry point for the shardkit command."""
    shardkit()


if __name__ == "__main__":
    main()
