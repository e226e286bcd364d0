"""Job queue and scheduler: durable, time-boxed processing of submitted work.

High-level flow:
  submit() -> descriptor appended to the persisted checkpoint -> recurring
  trigger ensured -> worker calls resume() every period -> each resume()
  processes entities front-first until the queue drains (trigger removed,
  DONE) or the time/item budget is reached (checkpoint persisted, CONTINUE).

The checkpoint is the only shared mutable state. Every read-modify-write of it
happens under the checkpoint lock, and a whole resume() holds the invocation
lock so two invocations never interleave. A stage is marked completed in the
checkpoint as soon as it reaches a terminal status, so an invocation cut off
mid-entity resumes at the first stage not yet attempted.
"""

import asyncio
import json
import logging
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import ValidationError

from enricher.collaborators.document_source import DocumentSource, LocalDocumentSource
from enricher.collaborators.record_store import JsonRecordStore, RecordStore
from enricher.collaborators.state_store import CHECKPOINT_LOCK, INVOCATION_LOCK, FileStateStore, StateStore
from enricher.collaborators.triggers import TriggerRegistry
from enricher.core.completion_client import CompletionClient, SleepFn
from enricher.core.config import AssetConfig, SchedulerConfig, StateKeys
from enricher.core.cost_tracker import CostTracker
from enricher.core.errors import CheckpointCorrupt, InvocationInProgress
from enricher.core.extractor import SchemaExtractor
from enricher.core.pipeline_logger import PipelineLogger, get_logger
from enricher.core.time_budget import Clock, SystemClock, TimeBudget
from enricher.pydantic_models.schema import UnifiedFieldSchema, default_schema
from enricher.pydantic_models.work import (
    Checkpoint,
    ResumeStatus,
    StageFlag,
    StageOutcome,
    WorkDescriptor,
)
from enricher.stages import (
    InvocationState,
    ReportRenderer,
    StageConfig,
    StageContext,
    StageExecutor,
    StageResources,
)

logger = logging.getLogger(__name__)


def load_schema(state: StateStore) -> UnifiedFieldSchema:
    """The persisted schema override, or the built-in default schema."""
    raw = state.get(StateKeys.FIELD_SCHEMA)
    if not raw:
        return default_schema()
    schema = UnifiedFieldSchema.model_validate_json(raw)
    logger.info(f"Using persisted field schema ({len(schema.fields)} fields)")
    return schema


class Scheduler:
    """Owner of the checkpoint. Runs queued work through a StageExecutor."""

    def __init__(
        self,
        state: StateStore,
        executor: StageExecutor,
        triggers: TriggerRegistry | None = None,
        logger: PipelineLogger | None = None,
        clock: Clock | None = None,
        sleep: SleepFn = asyncio.sleep,
        time_budget_seconds: float = SchedulerConfig.TIME_BUDGET_SECONDS,
        entities_per_invocation: int = SchedulerConfig.ENTITIES_PER_INVOCATION,
        rate_limit_delay: float = SchedulerConfig.RATE_LIMIT_DELAY_SECONDS,
        trigger_period: float = SchedulerConfig.TRIGGER_PERIOD_SECONDS,
        history_limit: int = SchedulerConfig.HISTORY_LIMIT,
    ):
        """Initialize the scheduler.

        Args:
            state: Persisted state holding the checkpoint and triggers.
            executor: Runs one stage for one entity.
            triggers: Trigger registry. Defaults to one over ``state``.
            logger: Pipeline logger. Defaults to the executor's.
            clock: Clock for the time budget. Defaults to the executor's.
            sleep: Awaitable sleep for the rate-limit pause and worker loop.
            time_budget_seconds: Elapsed-time ceiling checked before each entity.
            entities_per_invocation: Item ceiling per resume().
            rate_limit_delay: Pause after each entity's external calls.
            trigger_period: Period of the recurring resume trigger.
            history_limit: Stage outcomes kept in the checkpoint.
        """
        self.state = state
        self.executor = executor
        self.triggers = triggers or TriggerRegistry(state)
        self.logger = logger or executor.context.logger
        self.clock = clock or executor.context.clock
        self._sleep = sleep
        self.time_budget_seconds = time_budget_seconds
        self.entities_per_invocation = entities_per_invocation
        self.rate_limit_delay = rate_limit_delay
        self.trigger_period = trigger_period
        self.history_limit = history_limit

    # -- Checkpoint persistence --

    def load_checkpoint(self) -> Checkpoint:
        """Read the persisted checkpoint. Missing means empty.

        Raises:
            CheckpointCorrupt: If the blob is not JSON or fails validation.
        """
        raw = self.state.get(StateKeys.PROCESS_QUEUE)
        if raw is None or not raw.strip():
            return Checkpoint()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CheckpointCorrupt(f"Checkpoint is not valid JSON: {e}") from e

        # A bare descriptor list is a queue with no cursor
        if isinstance(data, list):
            data = {"queue": data}
        try:
            return Checkpoint.model_validate(data)
        except ValidationError as e:
            raise CheckpointCorrupt(f"Checkpoint failed validation: {e}") from e

    def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        self.state.set(StateKeys.PROCESS_QUEUE, checkpoint.model_dump_json())

    @contextmanager
    def _checkpoint(self) -> Iterator[Checkpoint]:
        """Read-modify-write the checkpoint under the checkpoint lock.

        The checkpoint is saved only if the block exits normally.
        """
        with self.state.exclusive(CHECKPOINT_LOCK, blocking=True):
            checkpoint = self.load_checkpoint()
            yield checkpoint
            self.save_checkpoint(checkpoint)

    # -- Submission --

    def submit(
        self,
        entities: Iterable[str],
        stages: Iterable[StageFlag | str],
        report_entities: Iterable[str] | None = None,
        template_id: str | None = None,
    ) -> str:
        """Queue entities for the flagged stages and return an acknowledgement.

        The new descriptor goes to the back of the queue, behind any work
        already pending. Report generation, if flagged, runs once when the
        descriptor drains, for ``report_entities`` (default: every entity).

        Raises:
            ValueError: If no entity or no stage is given.
        """
        names = [name.strip() for name in entities if name and name.strip()]
        if not names:
            raise ValueError("submit() needs at least one entity")
        flags = [StageFlag(s) for s in stages]
        if not flags:
            raise ValueError("submit() needs at least one stage flag")

        wants_reports = StageFlag.REPORT_GENERATION in flags
        if not wants_reports:
            reports = []
        elif report_entities is None:
            reports = list(names)
        else:
            reports = [name.strip() for name in report_entities if name and name.strip()]

        descriptor = WorkDescriptor(
            entities=names,
            stages=flags,
            report_entities=reports,
            template_id=template_id,
            submitted_at=self.clock.now(),
        )
        with self._checkpoint() as checkpoint:
            checkpoint.queue.append(descriptor)
            pending = checkpoint.pending_entities

        self.triggers.ensure(SchedulerConfig.RESUME_HANDLER, self.trigger_period)

        stage_list = ", ".join(str(flag) for flag in descriptor.stages)
        ack = f"Queued {len(names)} entities for {stage_list}. {pending} entities pending."
        self.logger.milestone(ack)
        return ack

    # -- Resume --

    async def resume(self) -> ResumeStatus:
        """Process queued entities until the queue drains or the budget is spent.

        Returns CONTINUE without doing anything if another invocation is
        running.

        Raises:
            CheckpointCorrupt: If the persisted checkpoint cannot be trusted.
        """
        with ExitStack() as stack:
            try:
                stack.enter_context(self.state.exclusive(INVOCATION_LOCK))
            except InvocationInProgress as e:
                self.logger.warning(f"Resume skipped: {e}")
                return ResumeStatus.CONTINUE
            return await self._resume()

    async def _resume(self) -> ResumeStatus:
        checkpoint = self.load_checkpoint()
        if checkpoint.is_empty:
            self._teardown()
            return ResumeStatus.DONE

        self.executor.context.state = InvocationState()
        budget = TimeBudget(
            clock=self.clock,
            limit_seconds=self.time_budget_seconds,
            item_limit=self.entities_per_invocation,
        )
        budget.start()
        self.logger.start_invocation("resume", pending=checkpoint.pending_entities)

        outcome = "failed"
        try:
            status = await self._drain(budget)
            outcome = status.value
            return status
        finally:
            self.logger.end_invocation(outcome, self._stats(budget))

    async def _drain(self, budget: TimeBudget) -> ResumeStatus:
        while True:
            with self.state.exclusive(CHECKPOINT_LOCK, blocking=True):
                checkpoint = self.load_checkpoint()
            front = checkpoint.front()
            if front is None:
                break
            if budget.exhausted():
                self.logger.milestone(
                    f"Yielding: {budget.reason()}", pending=checkpoint.pending_entities
                )
                return ResumeStatus.CONTINUE

            descriptor, entity = front
            if not descriptor.entity_stages:
                await self._process_reports_only(descriptor, entity)
                continue
            await self._process_entity(descriptor, entity)
            budget.count_item()
            await self._sleep(self.rate_limit_delay)

        self._teardown()
        return ResumeStatus.DONE

    async def _process_entity(self, descriptor: WorkDescriptor, entity: str) -> None:
        """Attempt every flagged stage for the front entity, then retire it."""
        with self._checkpoint() as checkpoint:
            if checkpoint.current_entity != entity:
                checkpoint.current_entity = entity
                checkpoint.completed_stages = []
            done = list(checkpoint.completed_stages)

        remaining = [flag for flag in descriptor.entity_stages if flag not in done]
        self.logger.milestone(f"Entity: {entity}", stages=[str(f) for f in remaining], resumed=len(done))

        for flag in remaining:
            outcome = await self.executor.run_stage(flag, entity)
            self._record([outcome], flag)

        drains_descriptor = len(descriptor.entities) == 1
        if drains_descriptor and descriptor.wants_reports and StageFlag.REPORT_GENERATION not in done:
            self.logger.milestone(f"Descriptor drained, generating {len(descriptor.report_entities)} report(s)")
            outcomes = await self.executor.run_reports(descriptor.report_entities, descriptor.template_id)
            self._record(outcomes, StageFlag.REPORT_GENERATION)

        self._retire(entity)

    async def _process_reports_only(self, descriptor: WorkDescriptor, entity: str) -> None:
        """A descriptor with no per-entity stages renders its reports and retires whole."""
        with self._checkpoint() as checkpoint:
            if checkpoint.current_entity != entity:
                checkpoint.current_entity = entity
                checkpoint.completed_stages = []
            done = StageFlag.REPORT_GENERATION in checkpoint.completed_stages

        if not done:
            self.logger.milestone(f"Report-only batch, generating {len(descriptor.report_entities)} report(s)")
            outcomes = await self.executor.run_reports(descriptor.report_entities, descriptor.template_id)
            self._record(outcomes, StageFlag.REPORT_GENERATION)

        self._retire(entity, whole_descriptor=True)

    def _record(self, outcomes: list[StageOutcome], flag: StageFlag) -> None:
        with self._checkpoint() as checkpoint:
            for outcome in outcomes:
                checkpoint.record(outcome, self.history_limit)
            checkpoint.completed_stages.append(flag)

    def _retire(self, entity: str, whole_descriptor: bool = False) -> None:
        """Pop the finished entity, and its descriptor if that was the last one."""
        with self._checkpoint() as checkpoint:
            front = checkpoint.front()
            if front is None or front[1] != entity:
                self.logger.warning(f"Checkpoint changed while {entity} was running; not retiring it")
                return
            descriptor = checkpoint.queue[0]
            if whole_descriptor:
                descriptor.entities.clear()
            else:
                descriptor.entities.pop(0)
            if not descriptor.entities:
                checkpoint.queue.pop(0)
            checkpoint.current_entity = None
            checkpoint.completed_stages = []

    def _teardown(self) -> None:
        if self.triggers.remove(SchedulerConfig.RESUME_HANDLER):
            self.logger.milestone("Queue drained, resume trigger removed")

    def _stats(self, budget: TimeBudget) -> dict:
        context = self.executor.context
        return {
            "entities": budget.items,
            "elapsed_seconds": round(budget.elapsed, 1),
            "stages": context.state.stage_counts,
            "errors": context.errors.summary(),
            "cost": context.cost_tracker.to_dict(),
        }

    # -- Worker loop --

    async def run_worker(self, max_invocations: int | None = None) -> int:
        """Call resume() every trigger period while the resume trigger exists.

        Returns the number of invocations made.
        """
        invocations = 0
        while True:
            trigger = self.triggers.get(SchedulerConfig.RESUME_HANDLER)
            if trigger is None:
                break
            status = await self.resume()
            invocations += 1
            if status == ResumeStatus.DONE:
                break
            if max_invocations is not None and invocations >= max_invocations:
                break
            await self._sleep(trigger.period_seconds)
        return invocations

    # -- Operator commands --

    def status(self) -> dict:
        checkpoint = self.load_checkpoint()
        return {
            "pending_entities": checkpoint.pending_entities,
            "descriptors": [
                {"entities": d.entities, "stages": [str(s) for s in d.stages]} for d in checkpoint.queue
            ],
            "current_entity": checkpoint.current_entity,
            "completed_stages": [str(s) for s in checkpoint.completed_stages],
            "trigger_active": self.triggers.is_active(SchedulerConfig.RESUME_HANDLER),
            "recent": [o.model_dump(mode="json") for o in checkpoint.history[-10:]],
        }

    def clear(self) -> int:
        """Abandon all queued work and remove the trigger. Returns entities dropped."""
        with self.state.exclusive(CHECKPOINT_LOCK, blocking=True):
            try:
                dropped = self.load_checkpoint().pending_entities
            except CheckpointCorrupt:
                dropped = 0
            self.state.delete(StateKeys.PROCESS_QUEUE)
        self.triggers.remove(SchedulerConfig.RESUME_HANDLER)
        self.logger.milestone(f"Checkpoint cleared, {dropped} entities dropped")
        return dropped


def build_scheduler(
    state: StateStore,
    store: RecordStore,
    documents: DocumentSource | None = None,
    renderer: ReportRenderer | None = None,
    template_id: str = AssetConfig.DEFAULT_TEMPLATE_ID,
    verbose: bool = False,
    log_dir: str | Path | None = None,
    clock: Clock | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> Scheduler:
    """Wire a scheduler with real collaborators around the given stores."""
    clock = clock or SystemClock()
    cost_tracker = CostTracker()
    resources = StageResources(
        client=CompletionClient(cost_tracker=cost_tracker, sleep=sleep),
        extractor=SchemaExtractor(load_schema(state)),
        store=store,
        logger=get_logger(verbose=verbose, log_dir=log_dir),
        cost_tracker=cost_tracker,
        documents=documents,
        renderer=renderer,
        clock=clock,
    )
    context = StageContext(
        resources=resources,
        config=StageConfig(template_id=template_id, verbose=verbose),
        state=InvocationState(),
    )
    return Scheduler(state, StageExecutor(context), clock=clock, sleep=sleep)


def build_local_scheduler(
    state_dir: str | Path,
    records_path: str | Path,
    documents_dir: str | Path | None = None,
    reports_dir: str | Path | None = None,
    verbose: bool = False,
) -> Scheduler:
    """Scheduler over file-backed stores, as the CLI uses it."""
    # Import here to avoid circular imports (onepager imports enricher.core)
    from onepager.generate_html_report import HtmlReportRenderer

    state_dir = Path(state_dir)
    return build_scheduler(
        state=FileStateStore(state_dir),
        store=JsonRecordStore(records_path),
        documents=LocalDocumentSource(documents_dir) if documents_dir else None,
        renderer=HtmlReportRenderer(reports_dir) if reports_dir else None,
        verbose=verbose,
        log_dir=state_dir / "logs",
    )
