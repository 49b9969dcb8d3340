"""SQLite-backed keyed storage for durable actors.

One row per (namespace, partition, key), so a mutation touches only the row
it changes instead of rewriting an actor's whole state.
"""

import time
from sqlmodel import SQLModel, Field


class ActorStorageEntry(SQLModel, table=True):
    """Single persisted key of a durable actor partition."""

    __tablename__ = "actor_storage"

    namespace: str = Field(primary_key=True, max_length=64)
    partition: str = Field(primary_key=True, max_length=255)
    key: str = Field(primary_key=True, max_length=512)
    value: str = Field(max_length=1000000)  # JSON serialized, up to 1MB
    updated_at: float = Field(default_factory=time.time, index=True)
