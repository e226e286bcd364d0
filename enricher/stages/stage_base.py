"""Base classes for per-entity stages.

The context is split into three parts so responsibilities are clear:
- **StageResources** (frozen): collaborators created once per process:
  completion client, schema extractor, record store, document source,
  report renderer, logger, cost tracker, clock.
- **StageConfig** (frozen): settings that never change mid-invocation.
- **InvocationState** (mutable): what accumulates during one resume() call:
  errors and per-stage counters.

StageContext wraps all three and exposes convenience properties so stages can
write ``ctx.store`` instead of ``ctx.resources.store``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol

from enricher.collaborators.document_source import DocumentSource
from enricher.collaborators.record_store import RecordStore, read_fields, write_fields
from enricher.core.completion_client import CompletionClient
from enricher.core.config import AssetConfig
from enricher.core.cost_tracker import CostTracker
from enricher.core.errors import PipelineErrors
from enricher.core.extractor import EntityRef, SchemaExtractor
from enricher.core.pipeline_logger import PipelineLogger
from enricher.core.time_budget import Clock, SystemClock
from enricher.pydantic_models.records import EntityRecord
from enricher.pydantic_models.schema import PartitionKind, UnifiedFieldSchema
from enricher.pydantic_models.work import StageFlag


class ReportRenderer(Protocol):
    def render_report(self, template_id: str, field_map: dict[str, str]) -> str: ...


@dataclass(frozen=True)
class StageResources:
    """Shared collaborators - created once, never modified."""

    client: CompletionClient
    extractor: SchemaExtractor
    store: RecordStore
    logger: PipelineLogger
    cost_tracker: CostTracker
    documents: DocumentSource | None = None
    renderer: ReportRenderer | None = None
    clock: Clock = field(default_factory=SystemClock)


@dataclass(frozen=True)
class StageConfig:
    """Configuration - set at init, never modified."""

    template_id: str = AssetConfig.DEFAULT_TEMPLATE_ID
    verbose: bool = False


@dataclass
class InvocationState:
    """Mutable state for one resume() invocation.

    - errors: StageErrors from every stage, summarized at the end
    - stage_counts: stage name -> status -> count
    """

    errors: PipelineErrors = field(default_factory=PipelineErrors)
    stage_counts: dict[str, dict[str, int]] = field(default_factory=dict)

    def count(self, stage: str, status: str) -> None:
        by_status = self.stage_counts.setdefault(stage, {})
        by_status[status] = by_status.get(status, 0) + 1


class StageContext:
    """Slim context holding references to the three component contexts."""

    def __init__(self, resources: StageResources, config: StageConfig, state: InvocationState):
        self.resources = resources
        self.config = config
        self.state = state

    # -- Resource properties (read-only) --

    @property
    def client(self) -> CompletionClient:
        return self.resources.client

    @property
    def extractor(self) -> SchemaExtractor:
        return self.resources.extractor

    @property
    def schema(self) -> UnifiedFieldSchema:
        return self.resources.extractor.schema

    @property
    def store(self) -> RecordStore:
        return self.resources.store

    @property
    def documents(self) -> DocumentSource | None:
        return self.resources.documents

    @property
    def renderer(self) -> ReportRenderer | None:
        return self.resources.renderer

    @property
    def logger(self) -> PipelineLogger:
        return self.resources.logger

    @property
    def cost_tracker(self) -> CostTracker:
        return self.resources.cost_tracker

    @property
    def clock(self) -> Clock:
        return self.resources.clock

    # -- Config properties (read-only) --

    @property
    def template_id(self) -> str:
        return self.config.template_id

    # -- State properties --

    @property
    def errors(self) -> PipelineErrors:
        return self.state.errors

    # -- Record helpers --

    def read(self, entity: EntityRecord, partition: PartitionKind) -> dict[str, str]:
        """Canonical fields of one partition."""
        return read_fields(self.store, self.schema, entity.entity_id, partition)

    def write(self, entity: EntityRecord, partition: PartitionKind, field_map: dict[str, str]) -> None:
        write_fields(self.store, self.schema, entity.entity_id, partition, field_map)

    def entity_ref(self, entity: EntityRecord) -> EntityRef:
        """Name and website for prompts. CRM data wins over internal data."""
        website = (
            self.read(entity, PartitionKind.CRM).get("website")
            or self.read(entity, PartitionKind.INTERNAL).get("website")
            or ""
        )
        return EntityRef(name=entity.name, website=website)


@dataclass
class StageReport:
    """What a stage did for one entity.

    ``failed`` marks a stage that wrote error sentinels instead of raising.
    """

    summary: str
    failed: bool = False
    error: str | None = None
    metrics: dict = field(default_factory=dict)


class StageRunner(ABC):
    """Base class for stage runners.

    Each stage:
    - Has a flag and a name for logging
    - Takes a StageContext with shared collaborators
    - Runs for exactly one entity and returns a StageReport
    - Raises NotFound when it does not apply, other EnrichmentErrors on failure
    """

    flag: StageFlag
    name: str = "unnamed"

    def __init__(self, context: StageContext):
        self.context = context
        self.logger = context.logger

    @abstractmethod
    async def run(self, entity: EntityRecord, **options) -> StageReport:
        """Execute the stage for one entity."""
        pass

    def log(self, message: str, level: str = "info", **data):
        """Log a message with stage context."""
        if level == "debug":
            self.logger.debug(f"[{self.name}] {message}", **data)
        elif level == "warning":
            self.logger.warning(f"[{self.name}] {message}", **data)
        elif level == "error":
            self.logger.error(f"[{self.name}] {message}", **data)
        else:
            self.logger.info(f"[{self.name}] {message}", **data)
