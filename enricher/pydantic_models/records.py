"""Typed addressing for entity rows in the record store.

Stages never compute row offsets. They name an entity and a partition, and
the record store resolves where that lives.
"""

from pydantic import BaseModel, ConfigDict, Field

from enricher.pydantic_models.schema import PartitionKind


def entity_key(name: str) -> str:
    """Case-insensitive identifier for an organization name."""
    return " ".join(name.split()).casefold()


class PartitionLocator(BaseModel):
    """Where one entity's fields live in one partition."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    partition: PartitionKind

    def __str__(self) -> str:
        return f"{self.partition.value}:{self.entity_id}"


class EntityRecord(BaseModel):
    """An organization as stored across all partitions.

    Attributes:
        entity_id: Case-folded name, unique across the store.
        name: Display name as first registered.
        partitions: Partition -> schema column header -> cell text. The store
            only sees headers; read_fields and write_fields translate them
            to and from canonical field keys.
    """

    entity_id: str
    name: str
    cohort: str | None = None
    partitions: dict[PartitionKind, dict[str, str]] = Field(default_factory=dict)

    def fields(self, partition: PartitionKind) -> dict[str, str]:
        return self.partitions.get(partition, {})
