"""Web enrichment - grounded research per stage group into the discovered partition."""

from enricher.core.completion_client import ModelTier
from enricher.core.errors import ExhaustedRetries, MalformedOutput, classify
from enricher.core.extractor import EntityRef
from enricher.pydantic_models.extraction_models import StageResult
from enricher.pydantic_models.records import EntityRecord
from enricher.pydantic_models.schema import ENRICHMENT_GROUPS, PartitionKind, StageGroup
from enricher.pydantic_models.work import StageFlag
from enricher.stages.stage_base import StageReport, StageRunner


class WebEnrichmentStage(StageRunner):
    """Phase per group: research (smart, grounded) -> format (fast) -> parse -> write.

    Groups are independent. A group whose calls are exhausted or whose output
    cannot be parsed gets the "error" sentinel in every one of its fields and
    the remaining groups still run.
    """

    flag = StageFlag.WEB_ENRICHMENT
    name = "WebEnrichment"

    async def run(self, entity: EntityRecord, **options) -> StageReport:
        ref = self.context.entity_ref(entity)
        groups = [g for g in ENRICHMENT_GROUPS if self.context.schema.for_group(g)]
        self.logger.set_tick_total(len(groups))

        failed_groups: list[str] = []
        fields_written = 0

        for group in groups:
            try:
                result = await self._enrich_group(ref, group)
            except (ExhaustedRetries, MalformedOutput) as e:
                self.context.errors.add(classify(e, self.name, entity.name))
                self.log(f"{group} failed, writing error sentinel: {e}", "warning")
                keys = [spec.key for spec in self.context.schema.for_group(group)]
                result = StageResult.failure(keys, str(e), group=group)
                failed_groups.append(group.value)

            self.context.write(entity, PartitionKind.DISCOVERED, result.cells())
            fields_written += len(result.fields)
            self.logger.tick(group.value)

        summary = f"{len(groups) - len(failed_groups)}/{len(groups)} groups, {fields_written} fields"
        if failed_groups:
            return StageReport(
                summary=summary,
                failed=True,
                error=f"Groups failed: {', '.join(failed_groups)}",
                metrics={"fields": fields_written},
            )
        return StageReport(summary=summary, metrics={"fields": fields_written})

    async def _enrich_group(self, ref: EntityRef, group: StageGroup) -> StageResult:
        extractor = self.context.extractor
        client = self.context.client

        research = await client.complete(
            ModelTier.SMART,
            extractor.build_extraction_prompt(ref, group),
            use_grounding=True,
            stage=self.flag.value,
        )
        formatted = await client.complete(
            ModelTier.FAST,
            extractor.build_formatting_prompt(research, group),
            stage=self.flag.value,
        )
        return extractor.parse_structured(formatted, group)
