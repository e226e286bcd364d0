"""Pydantic models for the enrichment pipeline.

Modules:
- field_values: Scalar | Described | DescribedList tagged union, normalization, cell rendering
- schema: UnifiedFieldSchema, FieldSpec, StageGroup, PartitionKind
- records: PartitionLocator, EntityRecord
- work: WorkDescriptor, Checkpoint, StageFlag, StageStatus, StageOutcome
- extraction_models: StageResult
"""

from enricher.pydantic_models.field_values import (
    Described,
    DescribedList,
    FieldValue,
    Scalar,
    error_marker,
    is_undisclosed,
    normalize_boolean,
    normalize_value,
    render_cell,
    strip_sources,
    undisclosed,
)
from enricher.pydantic_models.schema import (
    ENRICHMENT_GROUPS,
    FieldSpec,
    PartitionKind,
    StageGroup,
    UnifiedFieldSchema,
    default_schema,
)
from enricher.pydantic_models.records import EntityRecord, PartitionLocator, entity_key
from enricher.pydantic_models.work import (
    STAGE_ORDER,
    Checkpoint,
    ResumeStatus,
    StageFlag,
    StageOutcome,
    StageStatus,
    WorkDescriptor,
)
from enricher.pydantic_models.extraction_models import StageResult

__all__ = [
    # Field values
    "Described",
    "DescribedList",
    "FieldValue",
    "Scalar",
    "error_marker",
    "is_undisclosed",
    "normalize_boolean",
    "normalize_value",
    "render_cell",
    "strip_sources",
    "undisclosed",
    # Schema
    "ENRICHMENT_GROUPS",
    "FieldSpec",
    "PartitionKind",
    "StageGroup",
    "UnifiedFieldSchema",
    "default_schema",
    # Records
    "EntityRecord",
    "PartitionLocator",
    "entity_key",
    # Work queue
    "STAGE_ORDER",
    "Checkpoint",
    "ResumeStatus",
    "StageFlag",
    "StageOutcome",
    "StageStatus",
    "WorkDescriptor",
    # Stage output
    "StageResult",
]
