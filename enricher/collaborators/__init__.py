"""External collaborators behind narrow interfaces.

- record_store: rows per entity per partition, asset resolution
- document_source: uploaded documents per entity, recency selection
- state_store: persisted JSON blobs and the exclusive checkpoint lock
- triggers: recurring trigger registry
- crm_import: CRM export -> CRM partition
"""

from enricher.collaborators.record_store import (
    RecordStore,
    InMemoryRecordStore,
    JsonRecordStore,
    asset_url,
    read_fields,
    write_fields,
)
from enricher.collaborators.document_source import (
    DocumentInfo,
    DocumentSource,
    LocalDocumentSource,
    select_documents,
)
from enricher.collaborators.state_store import StateStore, InMemoryStateStore, FileStateStore
from enricher.collaborators.triggers import Trigger, TriggerRegistry
from enricher.collaborators.crm_import import CrmImportResult, import_crm_export, load_crm_export

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "JsonRecordStore",
    "asset_url",
    "read_fields",
    "write_fields",
    "DocumentInfo",
    "DocumentSource",
    "LocalDocumentSource",
    "select_documents",
    "StateStore",
    "InMemoryStateStore",
    "FileStateStore",
    "Trigger",
    "TriggerRegistry",
    "CrmImportResult",
    "import_crm_export",
    "load_crm_export",
]
