"""Schema-driven prompt construction and structured-output parsing.

Everything here is derived from the injected UnifiedFieldSchema:
- Extraction prompts list one ``[fieldKey] instruction`` line per field in
  the requested stage group.
- Formatting prompts add a JSON skeleton: an object per single-valued field,
  an array of objects per multi-valued field.
- ``parse_structured`` walks every declared field of the group, so the result
  never omits a key. Absent or null fields become "Undisclosed".

``group=None`` means every enrichable field (synthesis, document extraction).
"""

import json
import logging
from dataclasses import dataclass

from json_repair import repair_json

from enricher.core.completion_client import strip_code_fences
from enricher.core.errors import MalformedOutput
from enricher.prompts import (
    build_document_prompt,
    build_formatting_prompt_text,
    build_research_prompt,
    build_synthesis_prompt,
)
from enricher.pydantic_models.extraction_models import StageResult
from enricher.pydantic_models.field_values import (
    Described,
    DescribedList,
    normalize_boolean,
    normalize_value,
)
from enricher.pydantic_models.schema import FieldSpec, StageGroup, UnifiedFieldSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityRef:
    """The identity a prompt is built around."""

    name: str
    website: str = ""


def _skeleton_entry(spec: FieldSpec) -> dict | list:
    entry = {"description": "", "sources": []}
    return [entry] if spec.multi_valued else entry


def load_json_object(raw_output: str) -> dict:
    """Parse model text into a dict, repairing near-JSON before giving up.

    Raises:
        MalformedOutput: If the text is not (repairable to) a JSON object.
    """
    text = strip_code_fences(raw_output or "")
    if not text:
        raise MalformedOutput("Empty model output", raw_output=raw_output)

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("JSON parse failed, attempting repair")
        data = repair_json(text, return_objects=True)

    if not isinstance(data, dict):
        raise MalformedOutput(
            f"Expected a JSON object, got {type(data).__name__}",
            raw_output=raw_output,
        )
    return data


class SchemaExtractor:
    """Builds prompts from, and parses output against, one schema."""

    def __init__(self, schema: UnifiedFieldSchema):
        self.schema = schema

    def fields(self, group: StageGroup | None) -> list[FieldSpec]:
        return self.schema.for_group(group)

    def category_lines(self, group: StageGroup | None) -> str:
        """One ``[key] instruction`` line per field."""
        lines = []
        for spec in self.fields(group):
            suffix = " (one line per item)" if spec.multi_valued else ""
            lines.append(f"[{spec.key}] {spec.prompt}{suffix}".rstrip())
        return "\n".join(lines)

    def json_skeleton(self, group: StageGroup | None) -> str:
        skeleton = {spec.key: _skeleton_entry(spec) for spec in self.fields(group)}
        return json.dumps(skeleton, indent=2)

    def build_extraction_prompt(self, entity: EntityRef, group: StageGroup) -> str:
        return build_research_prompt(entity.name, entity.website, group, self.category_lines(group))

    def build_formatting_prompt(
        self,
        raw_text: str,
        group: StageGroup | None,
        label: str = "Extracted Text",
    ) -> str:
        return build_formatting_prompt_text(raw_text, self.json_skeleton(group), label=label)

    def build_synthesis_prompt(self, entity: EntityRef, payload: dict) -> str:
        return build_synthesis_prompt(entity.name, entity.website, self.category_lines(None), payload)

    def build_document_prompt(self, entity: EntityRef) -> str:
        return build_document_prompt(entity.name, self.category_lines(None))

    def document_response_schema(self) -> dict:
        """Flat response schema for document extraction: one nullable string per field."""
        return {
            "type": "object",
            "properties": {
                spec.key: {"type": "string", "nullable": True, "description": spec.prompt}
                for spec in self.fields(None)
            },
        }

    def parse_structured(self, raw_output: str, group: StageGroup | None) -> StageResult:
        """Parse model output into a StageResult covering every field of the group.

        Raises:
            MalformedOutput: If the output cannot be parsed as a JSON object.
        """
        data = load_json_object(raw_output)

        fields = {}
        for spec in self.fields(group):
            value = normalize_value(data.get(spec.key))
            if spec.multi_valued and isinstance(value, Described):
                value = DescribedList(items=(value,))
            if spec.value_kind == "boolean":
                value = normalize_boolean(value)
            fields[spec.key] = value

        unknown = set(data) - set(fields)
        if unknown:
            logger.debug(f"Ignoring undeclared keys in model output: {sorted(unknown)}")

        return StageResult(group=group, fields=fields)
