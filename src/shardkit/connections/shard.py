"""
Shard data model.

A ShardLocation names one shard's physical endpoint. A Shard is the
catalog's view of a shard; shardkit only reads its location.
"""
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ShardLocation(BaseModel):
    """(data source, database) pair identifying a shard. Immutable."""

    model_config = ConfigDict(frozen=True)

    data_source: str = Field(..., description="Server hosting the shard")
    database: str = Field(..., description="Database holding the shard")

    @field_validator("data_source", "database")
    @classmethod
    def validate_not_blank(cls, v, info):
        """Both parts of a location are required."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return v.strip()

    def __str__(self) -> str:
        return f"[DataSource={self.data_source} Database={self.database}]"


class Shard(BaseModel):
    """A shard as published by a shard map, consumed read-only."""

    model_config = ConfigDict(frozen=True)

    location: ShardLocation
    shard_map_name: Optional[str] = Field(
        default=None, description="Name of the shard map that owns this shard"
    )
    shard_id: uuid.UUID = Field(default_factory=uuid.uuid4)

    def __str__(self) -> str:
        if self.shard_map_name:
            return f"{self.shard_map_name}{self.location}"
        return str(self.location)


class ShardConnectionRecord(BaseModel):
    """
    A shard location together with the connection handle serving it.

    ``owned`` records whether the manager that holds this record is
    responsible for releasing the handle.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    location: ShardLocation
    connection: Optional[Any] = None
    owned: bool = True
