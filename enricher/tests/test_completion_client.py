"""Tests for enricher.core.completion_client module.

Tests the CompletionClient with a mocked litellm transport:
- Retry bound and fixed delay between attempts
- Smart-tier fallback model on the last retry
- Malformed responses retried like transport failures
- Citation splicing and code-fence stripping
- Cost tracking integration
"""

import base64
import logging

import pytest
from unittest.mock import AsyncMock, patch

from enricher.core.completion_client import (
    Attachment,
    CompletionClient,
    ModelTier,
    add_citations,
    model_for,
    strip_code_fences,
)
from enricher.core.config import FAST_MODEL, SMART_FALLBACK_MODEL, SMART_MODEL, LLMConfig
from enricher.core.cost_tracker import CostTracker
from enricher.core.errors import ExhaustedRetries, MalformedOutput, TransportError


GROUNDING = {
    "groundingChunks": [
        {"web": {"title": "x", "uri": "https://x.example"}},
        {"web": {"title": "y", "uri": "https://y.example"}},
    ],
    "groundingSupports": [
        {"segment": {"endIndex": 1}, "groundingChunkIndices": [0]},
        {"segment": {"endIndex": 2}, "groundingChunkIndices": [1]},
    ],
}


@pytest.fixture
def acompletion():
    with patch("enricher.core.completion_client.litellm.acompletion", new_callable=AsyncMock) as mock:
        yield mock


# =============================================================================
# Pure helpers
# =============================================================================


class TestAddCitations:
    """Tests for citation splicing."""

    def test_two_supports_do_not_corrupt_each_other(self):
        assert add_citations("AB", GROUNDING) == "A (x)B (y)"

    def test_support_order_in_metadata_does_not_matter(self):
        reversed_supports = dict(GROUNDING, groundingSupports=list(reversed(GROUNDING["groundingSupports"])))
        assert add_citations("AB", reversed_supports) == "A (x)B (y)"

    def test_offsets_are_utf8_bytes(self):
        metadata = {
            "groundingChunks": [{"web": {"title": "src"}}],
            "groundingSupports": [{"segment": {"endIndex": 2}, "groundingChunkIndices": [0]}],
        }
        # "é" is two bytes, so offset 2 is right after it
        assert add_citations("éB", metadata) == "é (src)B"

    def test_multiple_chunks_on_one_support(self):
        metadata = dict(
            GROUNDING,
            groundingSupports=[{"segment": {"endIndex": 2}, "groundingChunkIndices": [0, 1]}],
        )
        assert add_citations("AB", metadata) == "AB (x) (y)"

    def test_out_of_range_offsets_are_skipped(self):
        metadata = dict(
            GROUNDING,
            groundingSupports=[
                {"segment": {"endIndex": 99}, "groundingChunkIndices": [0]},
                {"segment": {"endIndex": 1}, "groundingChunkIndices": [5]},
            ],
        )
        assert add_citations("AB", metadata) == "AB"

    def test_no_metadata_returns_text(self):
        assert add_citations("AB", None) == "AB"
        assert add_citations("AB", {}) == "AB"


class TestStripCodeFences:
    def test_strips_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert strip_code_fences("```\ntext\n```  ") == "text"

    def test_leaves_plain_text(self):
        assert strip_code_fences("  plain  ") == "plain"


class TestModelFor:
    def test_fast_tier_never_falls_back(self):
        assert model_for(ModelTier.FAST, 0) == FAST_MODEL
        assert model_for(ModelTier.FAST, 2) == FAST_MODEL

    def test_smart_tier_falls_back_on_second_retry(self):
        assert model_for(ModelTier.SMART, 0) == SMART_MODEL
        assert model_for(ModelTier.SMART, 1) == SMART_MODEL
        assert model_for(ModelTier.SMART, 2) == SMART_FALLBACK_MODEL


# =============================================================================
# CompletionClient tests
# =============================================================================


class TestCompletionClient:
    """Tests for CompletionClient.complete()."""

    @pytest.mark.asyncio
    async def test_success_makes_one_call_and_never_sleeps(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response("hello")
        client = CompletionClient(sleep=sleep)

        result = await client.complete(ModelTier.FAST, "Say hello")

        assert result == "hello"
        assert acompletion.await_count == 1
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_transport_fails_twice_then_succeeds(self, acompletion, sleep, make_response):
        acompletion.side_effect = [
            Exception("503 Service Unavailable"),
            Exception("Read timed out"),
            make_response("AB", grounding=GROUNDING),
        ]
        client = CompletionClient(sleep=sleep)

        result = await client.complete(ModelTier.SMART, "Research Acme", use_grounding=True)

        assert result == "A (x)B (y)"
        assert sleep.calls == [5.0, 5.0]
        assert acompletion.await_count == 3

    @pytest.mark.asyncio
    async def test_retried_result_matches_single_call(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response("AB", grounding=GROUNDING)
        single = await CompletionClient(sleep=sleep).complete(ModelTier.SMART, "p", use_grounding=True)

        acompletion.reset_mock()
        acompletion.side_effect = [Exception("boom"), Exception("boom"), make_response("AB", grounding=GROUNDING)]
        retried = await CompletionClient(sleep=sleep).complete(ModelTier.SMART, "p", use_grounding=True)

        assert retried == single

    @pytest.mark.asyncio
    async def test_last_retry_uses_fallback_model(self, acompletion, sleep, make_response):
        acompletion.side_effect = [Exception("overloaded"), Exception("overloaded"), make_response("ok")]
        client = CompletionClient(sleep=sleep)

        await client.complete(ModelTier.SMART, "prompt")

        models = [call.kwargs["model"] for call in acompletion.call_args_list]
        assert models == [SMART_MODEL, SMART_MODEL, SMART_FALLBACK_MODEL]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_with_last_error(self, acompletion, sleep):
        acompletion.side_effect = [Exception("one"), Exception("two"), Exception("three")]
        client = CompletionClient(sleep=sleep)

        with pytest.raises(ExhaustedRetries) as exc_info:
            await client.complete(ModelTier.FAST, "prompt")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, TransportError)
        assert "three" in str(exc_info.value.last_error)
        assert sleep.calls == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_custom_attempts_and_delay_are_honored(self, acompletion, sleep, caplog):
        acompletion.side_effect = [Exception("one"), Exception("two")]
        client = CompletionClient(sleep=sleep, max_attempts=2, retry_delay=0.5)
        caplog.set_level(logging.WARNING, logger="enricher.core.completion_client")

        with pytest.raises(ExhaustedRetries) as exc_info:
            await client.complete(ModelTier.SMART, "prompt")

        assert exc_info.value.attempts == 2
        assert "two" in str(exc_info.value.last_error)
        assert sleep.calls == [0.5]
        assert acompletion.await_count == 2
        assert "raised TransportError" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_not_retried(self, sleep):
        client = CompletionClient(sleep=sleep)

        with patch.object(client, "_call", new=AsyncMock(side_effect=KeyError("usage"))):
            with pytest.raises(KeyError):
                await client.complete(ModelTier.FAST, "prompt")
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_missing_text_is_retried_as_malformed(self, acompletion, sleep, make_response):
        acompletion.side_effect = [make_response(None), make_response("   "), make_response("finally")]
        client = CompletionClient(sleep=sleep)

        assert await client.complete(ModelTier.FAST, "prompt") == "finally"
        assert len(sleep.calls) == 2

    @pytest.mark.asyncio
    async def test_malformed_exhaustion_carries_malformed_output(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response(None)
        client = CompletionClient(sleep=sleep)

        with pytest.raises(ExhaustedRetries) as exc_info:
            await client.complete(ModelTier.FAST, "prompt")
        assert isinstance(exc_info.value.last_error, MalformedOutput)

    @pytest.mark.asyncio
    async def test_empty_prompt_is_rejected_without_calling(self, acompletion, sleep):
        client = CompletionClient(sleep=sleep)
        with pytest.raises(ValueError):
            await client.complete(ModelTier.FAST, "   ")
        acompletion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_strips_code_fences(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response('```json\n{"a": 1}\n```')
        client = CompletionClient(sleep=sleep)
        assert await client.complete(ModelTier.FAST, "prompt") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_grounding_sends_search_tool(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response("text")
        client = CompletionClient(sleep=sleep)

        await client.complete(ModelTier.SMART, "prompt", use_grounding=True)

        call_kwargs = acompletion.call_args.kwargs
        assert call_kwargs["tools"] == [LLMConfig.GROUNDING_TOOL]
        assert call_kwargs["temperature"] == LLMConfig.TEMPERATURE
        assert call_kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_citations_not_spliced_without_grounding(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response("AB", grounding=GROUNDING)
        client = CompletionClient(sleep=sleep)
        assert await client.complete(ModelTier.SMART, "prompt") == "AB"

    @pytest.mark.asyncio
    async def test_attachments_and_schema(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response("{}")
        client = CompletionClient(sleep=sleep)
        schema = {"type": "object", "properties": {"arr": {"type": "string", "nullable": True}}}

        await client.complete(
            ModelTier.FAST,
            "Read these",
            attachments=[Attachment(data=b"%PDF", mime_type="application/pdf", name="deck.pdf")],
            response_schema=schema,
        )

        call_kwargs = acompletion.call_args.kwargs
        assert call_kwargs["response_format"] == {"type": "json_object", "response_schema": schema}
        assert call_kwargs["max_tokens"] == LLMConfig.DOCUMENT_MAX_OUTPUT_TOKENS
        file_part, text_part = call_kwargs["messages"][0]["content"]
        encoded = base64.b64encode(b"%PDF").decode("ascii")
        assert file_part["file"]["file_data"] == f"data:application/pdf;base64,{encoded}"
        assert text_part == {"type": "text", "text": "Read these"}

    @pytest.mark.asyncio
    async def test_tracks_costs_per_stage(self, acompletion, sleep, make_response):
        acompletion.return_value = make_response("ok", prompt_tokens=120, completion_tokens=30)
        tracker = CostTracker()
        client = CompletionClient(cost_tracker=tracker, sleep=sleep)

        await client.complete(ModelTier.FAST, "prompt", stage="web_enrichment")

        assert tracker.call_count == 1
        assert tracker.total_prompt_tokens == 120
        assert tracker.total_completion_tokens == 30
        assert tracker.calls[0].stage == "web_enrichment"
        assert tracker.calls[0].model == FAST_MODEL
