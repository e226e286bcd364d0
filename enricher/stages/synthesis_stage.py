"""Synthesis - reconcile the three source partitions into the final partition."""

from enricher.core.completion_client import ModelTier
from enricher.core.config import IDENTITY_FIELDS
from enricher.core.errors import ExhaustedRetries, MalformedOutput, NotFound, classify
from enricher.pydantic_models.extraction_models import StageResult
from enricher.pydantic_models.records import EntityRecord
from enricher.pydantic_models.schema import PartitionKind
from enricher.pydantic_models.work import StageFlag
from enricher.stages.stage_base import StageReport, StageRunner


class SynthesisStage(StageRunner):
    """Reconcile CRM, internal and web data into one authoritative record.

    The briefing payload carries every source partition keyed by canonical
    field key. Identity fields are never synthesized: they are copied verbatim
    from the source record (CRM first, then internal).

    A failed synthesis does not block report generation. The final partition
    gets the "error" sentinel in every enrichable field, identity fields are
    still written, and the stage reports failure.
    """

    flag = StageFlag.SYNTHESIS
    name = "Synthesis"

    def _identity(self, entity: EntityRecord, crm: dict[str, str], internal: dict[str, str]) -> dict[str, str]:
        declared = set(self.context.schema.keys)
        identity = {}
        for key in IDENTITY_FIELDS:
            if key not in declared:
                continue
            value = crm.get(key) or internal.get(key)
            if value:
                identity[key] = value
        if "name" in declared:
            identity.setdefault("name", entity.name)
        return identity

    async def run(self, entity: EntityRecord, **options) -> StageReport:
        internal = self.context.read(entity, PartitionKind.INTERNAL)
        crm = self.context.read(entity, PartitionKind.CRM)
        discovered = self.context.read(entity, PartitionKind.DISCOVERED)
        if not (internal or crm or discovered):
            raise NotFound(f"No source data to synthesize for {entity.name}")

        identity = self._identity(entity, crm, internal)
        payload = {
            "name": identity.get("name", entity.name),
            "website": identity.get("website", ""),
            "sector": identity.get("sector", ""),
            "sources": {"crm": crm, "internal": internal, "web": discovered},
        }
        self.log("Reconciling sources", crm=len(crm), internal=len(internal), web=len(discovered))

        extractor = self.context.extractor
        client = self.context.client
        failed = None
        try:
            synthesized = await client.complete(
                ModelTier.SMART,
                extractor.build_synthesis_prompt(self.context.entity_ref(entity), payload),
                stage=self.flag.value,
            )
            formatted = await client.complete(
                ModelTier.FAST,
                extractor.build_formatting_prompt(synthesized, None, label="Synthesized Text"),
                stage=self.flag.value,
            )
            result = extractor.parse_structured(formatted, None)
        except (ExhaustedRetries, MalformedOutput) as e:
            self.context.errors.add(classify(e, self.name, entity.name))
            self.log(f"Synthesis failed, writing error sentinel: {e}", "warning")
            keys = [spec.key for spec in self.context.schema.enrichable()]
            result = StageResult.failure(keys, str(e))
            failed = str(e)

        self.context.write(entity, PartitionKind.FINAL, {**result.cells(), **identity})

        summary = f"{len(result.fields)} fields, {len(identity)} identity fields"
        return StageReport(summary=summary, failed=failed is not None, error=failed)
