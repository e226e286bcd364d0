"""Report generation - render the final partition and write back the report link."""

from enricher.core.errors import NotFound
from enricher.pydantic_models.field_values import strip_sources
from enricher.pydantic_models.records import EntityRecord
from enricher.pydantic_models.schema import PartitionKind
from enricher.pydantic_models.work import StageFlag
from enricher.stages.stage_base import StageReport, StageRunner

REPORT_LINK_FIELD = "reportLink"


class ReportGenerationStage(StageRunner):
    """Hand the final field map, plus logo and flag assets, to the renderer."""

    flag = StageFlag.REPORT_GENERATION
    name = "ReportGeneration"

    def field_map(self, entity: EntityRecord, final: dict[str, str]) -> dict[str, str]:
        """Report fields: final cells without source lists, plus image URLs."""
        fields = {key: strip_sources(value) for key, value in final.items() if key != REPORT_LINK_FIELD}
        fields.setdefault("name", entity.name)

        store = self.context.store
        for tag, reference in (("logo", final.get("website", "")), ("flag", final.get("location", ""))):
            url = store.resolve_asset(tag, reference)
            if url:
                fields[tag] = url
        return fields

    async def run(self, entity: EntityRecord, template_id: str | None = None, **options) -> StageReport:
        renderer = self.context.renderer
        if renderer is None:
            raise NotFound("No report renderer configured")

        final = self.context.read(entity, PartitionKind.FINAL)
        if not final:
            raise NotFound(f"No final record for {entity.name}")

        template = template_id or self.context.template_id
        locator = renderer.render_report(template, self.field_map(entity, final))

        if REPORT_LINK_FIELD in self.context.schema.keys:
            self.context.write(entity, PartitionKind.FINAL, {REPORT_LINK_FIELD: locator})

        self.log(f"Report written: {locator}")
        return StageReport(summary=locator, metrics={"template": template})
