"""Tests for enricher.core.extractor module.

Tests schema-driven prompt construction and structured parsing:
- Prompts list exactly the fields of the requested group
- parse_structured covers every declared field (missing -> Undisclosed)
- Multi-valued and boolean fields
- JSON repair before MalformedOutput
"""

import json

import pytest

from enricher.core.config import UNDISCLOSED
from enricher.core.errors import MalformedOutput
from enricher.core.extractor import EntityRef, SchemaExtractor, load_json_object
from enricher.pydantic_models import (
    Described,
    DescribedList,
    FieldSpec,
    Scalar,
    StageGroup,
    UnifiedFieldSchema,
    is_undisclosed,
)


@pytest.fixture
def extractor(schema):
    return SchemaExtractor(schema)


@pytest.fixture
def acme():
    return EntityRef(name="Acme", website="https://acme.io")


# =============================================================================
# Prompt construction
# =============================================================================


class TestPrompts:
    """Prompts are derived from the schema, one line per field."""

    def test_category_lines_for_group(self, extractor, schema):
        lines = extractor.category_lines(StageGroup.METRICS).splitlines()
        keys = [spec.key for spec in schema.for_group(StageGroup.METRICS)]
        assert len(lines) == len(keys)
        assert all(line.startswith(f"[{key}]") for line, key in zip(lines, keys))

    def test_multi_valued_fields_are_marked(self, extractor):
        lines = extractor.category_lines(StageGroup.GENERAL_INFO)
        assert "[risks] A potential risk or challenge facing the company. (one line per item)" in lines
        assert "[companySummary]" in lines
        assert "(one line per item)" not in lines.splitlines()[0]

    def test_extraction_prompt_names_entity_and_fields(self, extractor, acme):
        prompt = extractor.build_extraction_prompt(acme, StageGroup.FUNDING)
        assert "Acme" in prompt
        assert "https://acme.io" in prompt
        assert "[lastRoundAmount]" in prompt
        assert "[companySummary]" not in prompt

    def test_json_skeleton_shapes(self, extractor):
        skeleton = json.loads(extractor.json_skeleton(StageGroup.GENERAL_INFO))
        assert skeleton["companySummary"] == {"description": "", "sources": []}
        assert skeleton["risks"] == [{"description": "", "sources": []}]

    def test_formatting_prompt_embeds_text_and_skeleton(self, extractor):
        prompt = extractor.build_formatting_prompt("Acme raised a seed round.", StageGroup.FUNDING)
        assert "Acme raised a seed round." in prompt
        assert '"lastRoundType"' in prompt

    def test_synthesis_prompt_states_evidence_order(self, extractor, acme):
        payload = {"name": "Acme", "sources": {"crm": {"sector": "Industrial"}, "internal": {}, "web": {}}}
        prompt = extractor.build_synthesis_prompt(acme, payload)
        assert "Industrial" in prompt
        assert "[companySummary]" in prompt
        assert "[terms]" in prompt

    def test_document_response_schema_is_flat_and_nullable(self, extractor, schema):
        response_schema = extractor.document_response_schema()
        properties = response_schema["properties"]
        assert set(properties) == {spec.key for spec in schema.enrichable()}
        assert properties["arr"]["type"] == "string"
        assert properties["arr"]["nullable"] is True


# =============================================================================
# parse_structured
# =============================================================================


class TestParseStructured:
    """Schema completeness and normalization at the parse boundary."""

    def test_missing_risks_becomes_undisclosed(self, extractor):
        raw = json.dumps({"companySummary": {"description": "Makes anvils.", "sources": ["acme.io"]}})

        result = extractor.parse_structured(raw, StageGroup.GENERAL_INFO)

        assert "risks" in result.fields
        assert result.fields["risks"] == Scalar(value=UNDISCLOSED)

    def test_every_group_field_is_present(self, extractor, schema):
        for group in (StageGroup.GENERAL_INFO, StageGroup.METRICS, StageGroup.FUNDING, None):
            result = extractor.parse_structured("{}", group)
            expected = {spec.key for spec in schema.for_group(group)}
            assert set(result.fields) == expected
            assert all(is_undisclosed(v) for v in result.fields.values())

    def test_undeclared_keys_are_ignored(self, extractor):
        result = extractor.parse_structured('{"favouriteColour": "blue"}', StageGroup.METRICS)
        assert "favouriteColour" not in result.fields

    def test_single_described_in_multi_valued_field_becomes_list(self, extractor):
        raw = json.dumps({"risks": {"description": "Regulation.", "sources": ["ft.com"]}})
        result = extractor.parse_structured(raw, StageGroup.GENERAL_INFO)
        assert result.fields["risks"] == DescribedList(
            items=(Described(description="Regulation.", sources=("ft.com",)),)
        )

    def test_boolean_field_normalized(self, extractor):
        raw = json.dumps({"isCurrentlyRaising": {"description": "true", "sources": ["acme.io"]}})
        result = extractor.parse_structured(raw, StageGroup.FUNDING)
        assert result.fields["isCurrentlyRaising"].description == "Yes"
        assert result.fields["isCurrentlyRaising"].sources == ("acme.io",)

    def test_code_fenced_output(self, extractor):
        result = extractor.parse_structured('```json\n{"arr": "EUR 1M"}\n```', StageGroup.METRICS)
        assert result.fields["arr"] == Scalar(value="EUR 1M")

    def test_near_json_is_repaired(self, extractor):
        result = extractor.parse_structured('{"arr": "EUR 1M",}', StageGroup.METRICS)
        assert result.fields["arr"] == Scalar(value="EUR 1M")

    def test_result_carries_group(self, extractor):
        result = extractor.parse_structured("{}", StageGroup.FUNDING)
        assert result.group == StageGroup.FUNDING
        assert not result.failed

    def test_custom_schema_is_respected(self):
        schema = UnifiedFieldSchema(fields=(
            FieldSpec(key="mascot", label="Mascot", prompt="The company mascot.", group=StageGroup.GENERAL_INFO),
        ))
        result = SchemaExtractor(schema).parse_structured('{"mascot": "Road Runner"}', StageGroup.GENERAL_INFO)
        assert result.fields == {"mascot": Scalar(value="Road Runner")}


class TestLoadJsonObject:
    def test_non_json_raises_malformed(self):
        with pytest.raises(MalformedOutput):
            load_json_object("I could not find anything about this company.")

    def test_array_raises_malformed(self):
        with pytest.raises(MalformedOutput) as exc_info:
            load_json_object('[{"a": 1}]')
        assert exc_info.value.raw_output == '[{"a": 1}]'

    def test_empty_raises_malformed(self):
        with pytest.raises(MalformedOutput):
            load_json_object("")
