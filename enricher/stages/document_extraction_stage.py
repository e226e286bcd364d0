"""Document extraction - uploaded company updates into the internal partition."""

from enricher.collaborators.document_source import select_documents
from enricher.core.completion_client import Attachment, ModelTier
from enricher.core.errors import NotFound
from enricher.pydantic_models.field_values import is_undisclosed, render_cell
from enricher.pydantic_models.records import EntityRecord
from enricher.pydantic_models.schema import PartitionKind
from enricher.pydantic_models.work import StageFlag
from enricher.stages.stage_base import StageReport, StageRunner


class DocumentExtractionStage(StageRunner):
    """Read the entity's most relevant documents with the fast multimodal tier.

    Documents come from the entity's folder in the document source (see
    select_documents for the recency rule). The response is constrained by a
    flat JSON schema, one nullable string per enrichable field. Only fields the
    documents actually disclose are written, so manual entries in the internal
    partition survive fields the documents are silent on.
    """

    flag = StageFlag.DOCUMENT_EXTRACTION
    name = "DocumentExtraction"

    async def run(self, entity: EntityRecord, **options) -> StageReport:
        source = self.context.documents
        if source is None:
            raise NotFound("No document source configured")

        location = source.location_for(entity.name)
        documents = select_documents(source.list_documents(location), now=self.context.clock.now())
        if not documents:
            raise NotFound(f"No supported documents for {entity.name} in {location}")

        self.log(f"Sending {len(documents)} document(s)", documents=[d.name for d in documents])
        attachments = [
            Attachment(data=source.get_document_bytes(d.id), mime_type=d.mime_type, name=d.name)
            for d in documents
        ]

        extractor = self.context.extractor
        raw = await self.context.client.complete(
            ModelTier.FAST,
            extractor.build_document_prompt(self.context.entity_ref(entity)),
            attachments=attachments,
            response_schema=extractor.document_response_schema(),
            stage=self.flag.value,
        )
        result = extractor.parse_structured(raw, None)

        disclosed = {key: render_cell(value) for key, value in result.fields.items() if not is_undisclosed(value)}
        self.context.write(entity, PartitionKind.INTERNAL, disclosed)

        return StageReport(
            summary=f"{len(disclosed)} fields from {len(documents)} document(s)",
            metrics={"documents": len(documents), "fields": len(disclosed)},
        )
