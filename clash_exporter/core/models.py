# File: core/models.py

from typing import List

from pydantic import (
    BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, field_validator,
)

from clash_exporter.core.errors import SnapshotDecodeError


class Connection(BaseModel):
    """
    One entry of `connections`. Byte counts must be JSON integers; strings,
    floats and booleans are rejected. A missing id decodes as "".
    """
    model_config = ConfigDict(frozen=True)

    id:       StrictStr = ""
    upload:   StrictInt = Field(0, ge=0)
    download: StrictInt = Field(0, ge=0)
    chains:   List[StrictStr] = Field(default_factory=list)

    @field_validator("chains", mode="before")
    def _null_chains(cls, v):
        return [] if v is None else v


class ConnectionsSnapshot(BaseModel):
    """
    One full reply of the Clash `/connections` endpoint.
    `download_total` / `upload_total` are the daemon's cumulative counters,
    independent of the connections currently listed.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    download_total: StrictInt = Field(0, ge=0, alias="downloadTotal")
    upload_total:   StrictInt = Field(0, ge=0, alias="uploadTotal")
    connections:    List[Connection] = Field(default_factory=list)

    @field_validator("connections", mode="before")
    def _null_connections(cls, v):
        return [] if v is None else v


class ChainAggregate(BaseModel):
    connection_count: int = 0
    upload:           int = 0
    download:         int = 0

    def add(self, conn: Connection) -> None:
        self.connection_count += 1
        self.upload += conn.upload
        self.download += conn.download


def decode_snapshot(raw: bytes) -> ConnectionsSnapshot:
    """
    Parse raw response bytes into a ConnectionsSnapshot.
    Raises SnapshotDecodeError on malformed JSON or a payload of the wrong shape.
    """
    try:
        return ConnectionsSnapshot.model_validate_json(raw)
    except ValidationError as e:
        raise SnapshotDecodeError(f"invalid connections payload: {e}") from e
