"""Resilient client for the generative completion service.

Every model call in the pipeline goes through ``CompletionClient.complete``,
which absorbs:
- Tier -> model resolution (smart / fast), with a fallback variant of the
  smart tier from the second retry on
- Retry with a fixed delay (3 attempts, 2 sleeps at most), driven by tenacity
- Response-shape validation: a response without text is malformed and is
  retried exactly like a transport failure
- Citation splicing for grounded calls
- Markdown code-fence stripping
- Cost tracking

The transport is litellm, so model names are litellm identifiers and any
provider it supports can back either tier.

Usage:
    client = CompletionClient(cost_tracker=tracker)
    text = await client.complete(ModelTier.SMART, prompt, use_grounding=True, stage="web_enrichment")
"""

import asyncio
import base64
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

import litellm
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from enricher.core.config import (
    FAST_MODEL,
    SMART_FALLBACK_MODEL,
    SMART_MODEL,
    LLMConfig,
    RetryConfig,
)
from enricher.core.cost_tracker import CostTracker
from enricher.core.errors import ExhaustedRetries, MalformedOutput, TransportError

logger = logging.getLogger(__name__)

# Suppress LiteLLM debug noise (done once at module load)
logging.getLogger("litellm").setLevel(logging.ERROR)
logging.getLogger("LiteLLM").setLevel(logging.ERROR)
logging.getLogger("httpx").setLevel(logging.ERROR)

_FENCE_OPEN = re.compile(r"^\s*```[\w-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


class ModelTier(str, Enum):
    """Capability tiers a caller can ask for."""

    SMART = "smart"  # Grounded research, synthesis
    FAST = "fast"    # JSON formatting, document extraction


@dataclass(frozen=True)
class Attachment:
    """A binary document sent alongside the prompt."""

    data: bytes
    mime_type: str
    name: str = ""


SleepFn = Callable[[float], Awaitable[None]]


def model_for(tier: ModelTier, attempt: int) -> str:
    """Model identifier for a tier on a zero-based attempt index."""
    if tier == ModelTier.FAST:
        return FAST_MODEL
    if attempt >= RetryConfig.FALLBACK_FROM_ATTEMPT:
        return SMART_FALLBACK_MODEL
    return SMART_MODEL


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang / ``` and a trailing ``` if present."""
    stripped = _FENCE_OPEN.sub("", text, count=1)
    stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def add_citations(text: str, grounding_metadata: dict | None) -> str:
    """Splice " (title)" markers after each grounded segment.

    Grounding supports give segment end offsets in UTF-8 bytes of the
    response text. Supports are applied in descending end offset so an
    insertion never shifts an offset that has not been applied yet.
    """
    if not grounding_metadata:
        return text

    supports = grounding_metadata.get("groundingSupports") or []
    chunks = grounding_metadata.get("groundingChunks") or []
    if not supports or not chunks:
        return text

    encoded = text.encode("utf-8")
    ordered = sorted(
        supports,
        key=lambda s: (s.get("segment") or {}).get("endIndex") or 0,
        reverse=True,
    )

    for support in ordered:
        end_index = (support.get("segment") or {}).get("endIndex")
        if end_index is None or end_index < 0 or end_index > len(encoded):
            continue

        titles = []
        for chunk_index in support.get("groundingChunkIndices") or []:
            if 0 <= chunk_index < len(chunks):
                title = ((chunks[chunk_index] or {}).get("web") or {}).get("title")
                if title:
                    titles.append(f" ({title})")
        if not titles:
            continue

        marker = "".join(titles).encode("utf-8")
        encoded = encoded[:end_index] + marker + encoded[end_index:]

    return encoded.decode("utf-8", errors="replace")


def _grounding_metadata(response: Any) -> dict | None:
    """Pull the first candidate's grounding metadata off a litellm response."""
    metadata = getattr(response, "vertex_ai_grounding_metadata", None)
    if metadata is None:
        hidden = getattr(response, "_hidden_params", None) or {}
        metadata = hidden.get("vertex_ai_grounding_metadata")
    if isinstance(metadata, list):
        metadata = metadata[0] if metadata else None
    return metadata if isinstance(metadata, dict) else None


def _response_text(response: Any, model: str) -> str:
    """Extract choices[0].message.content or raise MalformedOutput."""
    choices = getattr(response, "choices", None)
    if not choices:
        raise MalformedOutput(f"{model} returned no choices")
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    if not isinstance(content, str) or not content.strip():
        raise MalformedOutput(f"{model} returned no text content")
    return content


def _build_messages(prompt: str, attachments: list[Attachment] | None) -> list[dict]:
    if not attachments:
        return [{"role": "user", "content": prompt}]

    parts: list[dict] = []
    for attachment in attachments:
        encoded = base64.b64encode(attachment.data).decode("ascii")
        parts.append({
            "type": "file",
            "file": {"file_data": f"data:{attachment.mime_type};base64,{encoded}"},
        })
    parts.append({"type": "text", "text": prompt})
    return [{"role": "user", "content": parts}]


class CompletionClient:
    """Client for completion calls with retry, fallback and cleanup."""

    def __init__(
        self,
        cost_tracker: CostTracker | None = None,
        sleep: SleepFn = asyncio.sleep,
        max_attempts: int = RetryConfig.MAX_ATTEMPTS,
        retry_delay: float = RetryConfig.DELAY_SECONDS,
    ) -> None:
        """Initialize the client.

        Args:
            cost_tracker: Optional tracker; every successful call is recorded.
            sleep: Awaitable sleep used between attempts (injected in tests).
            max_attempts: Attempts per complete() call, including the first.
            retry_delay: Seconds slept between attempts.
        """
        self.cost_tracker = cost_tracker
        self._sleep = sleep
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def complete(
        self,
        tier: ModelTier,
        prompt: str,
        use_grounding: bool = False,
        attachments: list[Attachment] | None = None,
        response_schema: dict | None = None,
        stage: str = "",
    ) -> str:
        """Send a prompt and return cleaned text.

        Args:
            tier: Capability tier to call.
            prompt: Non-empty prompt text.
            use_grounding: Enable search grounding and splice citations.
            attachments: Documents sent as multimodal input.
            response_schema: JSON schema the response must follow.
            stage: Stage name for cost tracking.

        Returns:
            Response text with citations spliced (if grounded) and code
            fences stripped.

        Raises:
            ValueError: If the prompt is empty.
            ExhaustedRetries: If every attempt failed. Carries the last error.
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt must be a non-empty string")

        messages = _build_messages(prompt, attachments)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception_type((TransportError, MalformedOutput)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    model = model_for(tier, attempt.retry_state.attempt_number - 1)
                    response = await self._call(model, messages, use_grounding, response_schema)
                    text = _response_text(response, model)
        except RetryError as e:
            raise ExhaustedRetries(self.max_attempts, e.last_attempt.exception()) from e

        if self.cost_tracker:
            self.cost_tracker.record(model, getattr(response, "usage", None), stage=stage)

        if use_grounding:
            text = add_citations(text, _grounding_metadata(response))
        return strip_code_fences(text)

    async def _call(
        self,
        model: str,
        messages: list[dict],
        use_grounding: bool,
        response_schema: dict | None,
    ) -> Any:
        """One litellm call. Every failure surfaces as TransportError."""
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": LLMConfig.TEMPERATURE,
            "top_p": LLMConfig.TOP_P,
            "max_tokens": (
                LLMConfig.DOCUMENT_MAX_OUTPUT_TOKENS if response_schema else LLMConfig.MAX_OUTPUT_TOKENS
            ),
        }
        if use_grounding:
            kwargs["tools"] = [dict(LLMConfig.GROUNDING_TOOL)]
        if response_schema:
            kwargs["response_format"] = {"type": "json_object", "response_schema": response_schema}

        try:
            return await litellm.acompletion(**kwargs)
        except Exception as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
