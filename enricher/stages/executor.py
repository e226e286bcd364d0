"""Stage executor - resolves an entity and runs one stage on it.

The executor is the only place stage exceptions are turned into statuses:

    NotFound          -> SKIPPED  (warning, stage does not apply)
    EnrichmentError   -> FAILED   (error recorded, queue continues)
    report.failed     -> FAILED   (stage wrote error sentinels itself)
    anything else     -> FAILED   (logged with the exception)

Nothing raised by a stage escapes run_stage().
"""

from enricher.core.errors import EnrichmentError, NotFound, classify
from enricher.pydantic_models.records import EntityRecord
from enricher.pydantic_models.work import StageFlag, StageOutcome, StageStatus
from enricher.stages.document_extraction_stage import DocumentExtractionStage
from enricher.stages.report_generation_stage import ReportGenerationStage
from enricher.stages.stage_base import StageContext, StageRunner
from enricher.stages.synthesis_stage import SynthesisStage
from enricher.stages.web_enrichment_stage import WebEnrichmentStage


def default_runners(context: StageContext) -> dict[StageFlag, StageRunner]:
    return {
        StageFlag.DOCUMENT_EXTRACTION: DocumentExtractionStage(context),
        StageFlag.WEB_ENRICHMENT: WebEnrichmentStage(context),
        StageFlag.SYNTHESIS: SynthesisStage(context),
        StageFlag.REPORT_GENERATION: ReportGenerationStage(context),
    }


class StageExecutor:
    """Runs stages for named entities against a shared StageContext."""

    def __init__(self, context: StageContext, runners: dict[StageFlag, StageRunner] | None = None):
        self.context = context
        self.runners = runners if runners is not None else default_runners(context)

    @property
    def logger(self):
        return self.context.logger

    def resolve(self, entity_name: str) -> EntityRecord:
        """Entity record for a name, matched case-insensitively."""
        entity_id = self.context.store.find_row_by_key(entity_name)
        if entity_id is None:
            raise NotFound(f"No record for entity: {entity_name}")
        return self.context.store.get_entity(entity_id)

    async def run_stage(self, flag: StageFlag, entity_name: str, **options) -> StageOutcome:
        """Run one stage for one entity and return its terminal outcome."""
        runner = self.runners[flag]
        self.logger.start_stage(runner.name, entity_name)
        self.logger.debug(f"{flag}: {StageStatus.PENDING} -> {StageStatus.RUNNING}", entity=entity_name)

        error = None
        try:
            entity = self.resolve(entity_name)
            report = await runner.run(entity, **options)
        except NotFound as e:
            status, error = StageStatus.SKIPPED, str(e)
            self.context.errors.add(classify(e, runner.name, entity_name))
            self.logger.warning(f"[{runner.name}] Skipped: {e}", entity=entity_name)
        except EnrichmentError as e:
            status, error = StageStatus.FAILED, str(e)
            self.context.errors.add(classify(e, runner.name, entity_name))
            self.logger.error(f"[{runner.name}] Failed for {entity_name}", exc=e)
        except Exception as e:
            status, error = StageStatus.FAILED, f"{type(e).__name__}: {e}"
            self.context.errors.add(classify(e, runner.name, entity_name))
            self.logger.error(f"[{runner.name}] Unexpected failure for {entity_name}", exc=e)
        else:
            status = StageStatus.FAILED if report.failed else StageStatus.COMPLETED
            error = report.error
            self.logger.stage_result(report.summary, status=status.value, **report.metrics)

        self.context.state.count(flag.value, status.value)
        return StageOutcome(
            entity=entity_name,
            stage=flag,
            status=status,
            error=error,
            finished_at=self.context.clock.now(),
        )

    async def run_reports(self, entity_names: list[str], template_id: str | None = None) -> list[StageOutcome]:
        """Generate reports for each entity, in order. One failure does not stop the rest."""
        outcomes = []
        for name in entity_names:
            outcomes.append(
                await self.run_stage(StageFlag.REPORT_GENERATION, name, template_id=template_id)
            )
        return outcomes
