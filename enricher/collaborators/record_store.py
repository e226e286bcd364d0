"""Record store: tabular rows per entity per partition.

Rows are column -> cell text. Which column a canonical field key lives in is
the schema's business (UnifiedFieldSchema.to_columns / from_columns); the
store only resolves a PartitionLocator to a row.

Two implementations:
- InMemoryRecordStore: tests and dry runs.
- JsonRecordStore: the same, persisted to one JSON file after every write.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from enricher.core.config import AssetConfig
from enricher.core.errors import NotFound
from enricher.pydantic_models.records import EntityRecord, PartitionLocator, entity_key
from enricher.pydantic_models.schema import PartitionKind

logger = logging.getLogger(__name__)

_COUNTRY_CODE = re.compile(r"^[A-Za-z]{2}$")


class RecordStore(Protocol):
    def read_row(self, locator: PartitionLocator) -> dict[str, str]: ...

    def write_row(self, locator: PartitionLocator, field_map: dict[str, str]) -> None: ...

    def find_row_by_key(self, key: str) -> str | None: ...

    def register(self, name: str, cohort: str | None = None) -> EntityRecord: ...

    def get_entity(self, entity_id: str) -> EntityRecord: ...

    def entities(self) -> list[EntityRecord]: ...

    def resolve_asset(self, kind: str, reference: str) -> str | None: ...


def website_domain(website: str) -> str:
    """Bare host of a website, e.g. 'https://www.acme.io/about' -> 'acme.io'."""
    website = website.strip()
    if not website:
        return ""
    if "//" not in website:
        website = f"//{website}"
    host = urlparse(website).hostname or ""
    return host.removeprefix("www.")


def asset_url(kind: str, reference: str) -> str | None:
    """Public URL for a report image, or None if it cannot be resolved.

    - ``logo``: favicon service for the website's domain, default domain if
      no website is known.
    - ``flag``: flag service for a two-letter country code.
    """
    reference = (reference or "").strip()
    if kind == "logo":
        domain = website_domain(reference) or AssetConfig.DEFAULT_LOGO_DOMAIN
        return AssetConfig.LOGO_URL.format(domain=domain)
    if kind == "flag":
        if not _COUNTRY_CODE.match(reference):
            return None
        return AssetConfig.FLAG_URL.format(code=reference.upper())
    return None


class InMemoryRecordStore:
    """Rows kept in dicts, keyed by partition then entity id."""

    def __init__(self):
        self._entities: dict[str, EntityRecord] = {}

    def register(self, name: str, cohort: str | None = None) -> EntityRecord:
        """Create the entity if it does not exist. Names are case-insensitive."""
        key = entity_key(name)
        if not key:
            raise ValueError("Entity name must not be blank")
        record = self._entities.get(key)
        if record is None:
            record = EntityRecord(entity_id=key, name=name.strip(), cohort=cohort)
            self._entities[key] = record
            self._persist()
        elif cohort and record.cohort != cohort:
            record.cohort = cohort
            self._persist()
        return record

    def find_row_by_key(self, key: str) -> str | None:
        entity_id = entity_key(key)
        return entity_id if entity_id in self._entities else None

    def get_entity(self, entity_id: str) -> EntityRecord:
        try:
            return self._entities[entity_id]
        except KeyError:
            raise NotFound(f"Entity not found: {entity_id}") from None

    def entities(self) -> list[EntityRecord]:
        return list(self._entities.values())

    def read_row(self, locator: PartitionLocator) -> dict[str, str]:
        """Row for the locator. Empty if the entity has nothing in that partition.

        Raises:
            NotFound: If the entity is not registered.
        """
        record = self.get_entity(locator.entity_id)
        return dict(record.fields(locator.partition))

    def write_row(self, locator: PartitionLocator, field_map: dict[str, str]) -> None:
        """Merge cells into the row; unmentioned cells keep their value."""
        record = self.get_entity(locator.entity_id)
        row = record.partitions.setdefault(locator.partition, {})
        row.update(field_map)
        logger.debug(f"Wrote {len(field_map)} cells to {locator}")
        self._persist()

    def resolve_asset(self, kind: str, reference: str) -> str | None:
        return asset_url(kind, reference)

    def _persist(self) -> None:
        pass


class JsonRecordStore(InMemoryRecordStore):
    """InMemoryRecordStore backed by a JSON file, rewritten atomically."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Record store {self.path} is not valid JSON: {e}") from e
        for item in raw.get("entities", []):
            record = EntityRecord.model_validate(item)
            self._entities[record.entity_id] = record

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"entities": [r.model_dump(mode="json") for r in self._entities.values()]}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)


def read_fields(store: RecordStore, schema, entity_id: str, partition: PartitionKind) -> dict[str, str]:
    """Read a partition row and map it back to canonical field keys."""
    row = store.read_row(PartitionLocator(entity_id=entity_id, partition=partition))
    return schema.from_columns(row, partition)


def write_fields(
    store: RecordStore,
    schema,
    entity_id: str,
    partition: PartitionKind,
    field_map: dict[str, str],
) -> None:
    """Write canonical field keys to their columns in a partition."""
    locator = PartitionLocator(entity_id=entity_id, partition=partition)
    store.write_row(locator, schema.to_columns(field_map, partition))
