"""Models for queued work and the persisted checkpoint.

A WorkDescriptor is one submission: an ordered list of entities plus the
stages to run on each. The Checkpoint is the durable queue of descriptors and
the cursor into the entity currently being processed. It is owned by the
scheduler and read and overwritten as a whole.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class StageFlag(str, Enum):
    """Per-entity stages, in execution order."""

    DOCUMENT_EXTRACTION = "document_extraction"
    WEB_ENRICHMENT = "web_enrichment"
    SYNTHESIS = "synthesis"
    REPORT_GENERATION = "report_generation"

    def __str__(self) -> str:
        return self.value


STAGE_ORDER: tuple[StageFlag, ...] = tuple(StageFlag)


class StageStatus(str, Enum):
    """Lifecycle of one stage for one entity."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # NotFound made the stage inapplicable


class ResumeStatus(str, Enum):
    """What a resume() invocation tells its caller."""

    CONTINUE = "continue"
    DONE = "done"


class WorkDescriptor(BaseModel):
    """One submission waiting in the queue.

    Attributes:
        entities: Entity names still to process, front first.
        stages: Stage flags to run on every entity, in execution order.
        report_entities: Entities that get a report once the descriptor
            drains. Only used when report generation is flagged.
        template_id: Report template for the drain-time reports.
    """

    entities: list[str]
    stages: list[StageFlag]
    report_entities: list[str] = Field(default_factory=list)
    template_id: str | None = None
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("stages")
    @classmethod
    def _order_stages(cls, value: list[StageFlag]) -> list[StageFlag]:
        return [flag for flag in STAGE_ORDER if flag in value]

    @property
    def entity_stages(self) -> list[StageFlag]:
        """Stages run per entity. Report generation runs at drain time instead."""
        return [flag for flag in self.stages if flag != StageFlag.REPORT_GENERATION]

    @property
    def wants_reports(self) -> bool:
        return StageFlag.REPORT_GENERATION in self.stages


class StageOutcome(BaseModel):
    """Terminal result of one stage for one entity, kept for status output."""

    entity: str
    stage: StageFlag
    status: StageStatus
    error: str | None = None
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Checkpoint(BaseModel):
    """Everything needed to resume after an invocation is cut off."""

    queue: list[WorkDescriptor] = Field(default_factory=list)
    current_entity: str | None = None
    completed_stages: list[StageFlag] = Field(default_factory=list)
    history: list[StageOutcome] = Field(default_factory=list)

    @model_validator(mode="after")
    def _no_empty_descriptors(self) -> "Checkpoint":
        for descriptor in self.queue:
            if not descriptor.entities:
                raise ValueError("Persisted queue contains a descriptor with no entities")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.queue

    @property
    def pending_entities(self) -> int:
        return sum(len(d.entities) for d in self.queue)

    def front(self) -> tuple[WorkDescriptor, str] | None:
        """The front descriptor and its front entity, or None if drained."""
        if not self.queue:
            return None
        descriptor = self.queue[0]
        return descriptor, descriptor.entities[0]

    def record(self, outcome: StageOutcome, limit: int) -> None:
        self.history.append(outcome)
        if len(self.history) > limit:
            del self.history[: len(self.history) - limit]
