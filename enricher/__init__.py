"""Organization Enrichment Pipeline.

A durable, time-boxed pipeline that enriches organization records from
uploaded documents, grounded web research and CRM data, reconciles them into
one authoritative record and renders a one-page report.

Architecture:
    core/            - completion client, extractor, config, logging, errors
    prompts/         - LLM prompt templates
    pydantic_models/ - field values, schema, records, work queue
    collaborators/   - record store, document source, state store, triggers
    stages/          - stage runner classes and the stage executor
    scheduler.py     - job queue: submit() and resume()

Usage:
    from enricher import build_scheduler

    scheduler = build_scheduler(state, store)
    scheduler.submit(["Acme", "Globex"], ["web_enrichment", "synthesis"])
    status = await scheduler.resume()

CLI:
    uv run enrich submit --all "Acme"
"""

from enricher.scheduler import Scheduler, build_local_scheduler, build_scheduler, load_schema
from enricher.pydantic_models import (
    # Field values
    Described,
    DescribedList,
    FieldValue,
    Scalar,
    # Schema
    FieldSpec,
    PartitionKind,
    StageGroup,
    UnifiedFieldSchema,
    default_schema,
    # Records
    EntityRecord,
    PartitionLocator,
    # Work queue
    Checkpoint,
    ResumeStatus,
    StageFlag,
    StageStatus,
    WorkDescriptor,
)

__all__ = [
    # Main entry points
    "Scheduler",
    "build_scheduler",
    "build_local_scheduler",
    "load_schema",
    # Field values
    "Described",
    "DescribedList",
    "FieldValue",
    "Scalar",
    # Schema
    "FieldSpec",
    "PartitionKind",
    "StageGroup",
    "UnifiedFieldSchema",
    "default_schema",
    # Records
    "EntityRecord",
    "PartitionLocator",
    # Work queue
    "Checkpoint",
    "ResumeStatus",
    "StageFlag",
    "StageStatus",
    "WorkDescriptor",
]
